"""
Minutes relay.

Receives recorded audio over a websocket, keeps it ordered per recording session and turns it
into a transcript and summary once the recording stops.
"""

__version__ = "0.1.0"
