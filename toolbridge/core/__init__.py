"""Settings, logging and HTTP error handling shared by the server."""
