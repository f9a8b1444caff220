"""Integration tests through the Flask and Socket.IO test clients."""
