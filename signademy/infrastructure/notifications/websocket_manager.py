"""WebSocket Manager for fanning out detection events to connected clients"""

import asyncio
import logging
from threading import Lock
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Keeps one bounded outgoing queue per WebSocket connection.
    
    publish() is synchronous so it can be called straight from detection
    listeners; each connection's sender task drains its own queue. A slow
    client loses its oldest messages instead of holding back the others.
    """
    
    def __init__(self, max_queue_size: int = 100):
        """Initialize WebSocket manager"""
        self.max_queue_size = max_queue_size
        self._queues: Set["asyncio.Queue[Dict[str, Any]]"] = set()
        self._lock = Lock()
        logger.info("WebSocketManager initialized")
    
    def add_connection(self) -> "asyncio.Queue[Dict[str, Any]]":
        """Register a connection and return the queue its sender should drain."""
        queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=self.max_queue_size)
        with self._lock:
            self._queues.add(queue)
        logger.info(f"Added WebSocket connection. Total connections: {self.get_total_connections()}")
        return queue
    
    def remove_connection(self, queue: "asyncio.Queue[Dict[str, Any]]") -> None:
        with self._lock:
            self._queues.discard(queue)
        logger.info(f"Removed WebSocket connection. Total connections: {self.get_total_connections()}")
    
    def publish(self, message: Dict[str, Any]) -> int:
        """
        Queue a message for every connection.
        
        Returns:
            Number of connections the message was queued for
        """
        with self._lock:
            queues = list(self._queues)
        
        for queue in queues:
            if queue.full():
                queue.get_nowait()
                logger.debug("Dropped oldest queued message for slow WebSocket client")
            queue.put_nowait(message)
        return len(queues)
    
    def get_total_connections(self) -> int:
        with self._lock:
            return len(self._queues)
