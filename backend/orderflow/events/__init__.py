from flask import current_app

from orderflow.events.bus import EventBus

EXTENSION_KEY = 'order_events'


def current_bus() -> EventBus:
    return current_app.extensions[EXTENSION_KEY]
