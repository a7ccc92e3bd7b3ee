"""Websocket transcription gateway: session handling, recording and providers."""
