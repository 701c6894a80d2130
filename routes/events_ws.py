"""WebSocket feed of profile events for presentation layers."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket
from starlette.websockets import WebSocketDisconnect

from models.profile_events import ProfileEvent
from services.event_broadcaster import EventBroadcaster

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def _require_broadcaster(websocket: WebSocket) -> EventBroadcaster:
	broadcaster = getattr(websocket.app.state, "event_broadcaster", None)
	if broadcaster is None:
		raise HTTPException(status_code=500, detail="Event broadcaster unavailable")
	return broadcaster


async def _wait_for_disconnect(websocket: WebSocket) -> None:
	"""Consume client frames until the socket closes; the feed is one-way."""
	while True:
		try:
			await websocket.receive_text()
		except WebSocketDisconnect:
			return


@router.websocket("/ws/profile-events")
async def profile_events_socket(websocket: WebSocket, broadcaster: EventBroadcaster = Depends(_require_broadcaster)):
	"""Push every profilePictureUpdated event published while the socket is open."""
	await websocket.accept()
	queue: asyncio.Queue = asyncio.Queue()
	unsubscribe = broadcaster.subscribe(ProfileEvent.PROFILE_PICTURE_UPDATED, queue.put_nowait)
	LOGGER.debug("Profile event subscriber connected")
	disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
	try:
		while True:
			next_event = asyncio.create_task(queue.get())
			done, _ = await asyncio.wait({next_event, disconnected}, return_when=asyncio.FIRST_COMPLETED)
			if next_event not in done:
				next_event.cancel()
				break
			event = next_event.result()
			message = {"type": ProfileEvent.PROFILE_PICTURE_UPDATED.value, **event.to_dict()}
			await websocket.send_text(json.dumps(message))
	except WebSocketDisconnect:
		pass
	finally:
		unsubscribe()
		disconnected.cancel()
		LOGGER.debug("Profile event subscriber disconnected")
