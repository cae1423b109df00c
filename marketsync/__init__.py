"""Client-side sync layer for a grocery storefront: notifications, chat and popups."""
