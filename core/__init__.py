"""Change-tracking core: approval gateway, snapshot store and restoration."""
