"""Collaborative editing relay: room presence and event forwarding."""

from coderunner.collab.relay import ConnectionHub, router
from coderunner.collab.sessions import Participant, SessionStore

__all__ = ["ConnectionHub", "Participant", "SessionStore", "router"]
