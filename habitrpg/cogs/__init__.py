"""Discord command groups for the habit quest bot."""
