"""Page parsers for the room-booking site."""
