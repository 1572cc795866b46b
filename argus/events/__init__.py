from argus.events.bus import EventBus as EventBus
from argus.events.models import EventType as EventType, TaskEvent as TaskEvent
