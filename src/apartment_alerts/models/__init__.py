from .listing import Alert, Coordinates, Listing, Notification, User, parse_neighborhoods

__all__ = ["Alert", "Coordinates", "Listing", "Notification", "User", "parse_neighborhoods"]
