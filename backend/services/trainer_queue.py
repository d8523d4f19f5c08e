"""Trainer review queue for low-confidence searches."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, List
from supabase import create_client, Client

from config import SUPABASE_URL, SUPABASE_KEY
from models.search import EscalationRecord, TrainerQueueItem, TrainerReply

logger = logging.getLogger(__name__)


class TrainerQueue:
    """Append-only escalation queue plus trainer replies, stored in Supabase."""

    QUEUE_TABLE = "trainer_queue"
    REPLIES_TABLE = "trainer_replies"

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        client: Optional[Client] = None
    ):
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
            client = create_client(supabase_url, supabase_key)
        self.client: Client = client
        logger.info("TrainerQueue initialized with Supabase")

    def escalate(self, record: EscalationRecord) -> TrainerQueueItem:
        """
        Append a low-confidence query for human review.

        Args:
            record: Escalation emitted by the retrieval engine

        Returns:
            The stored queue item
        """
        item = TrainerQueueItem(
            id=self._generate_id("tq"),
            query=record.query,
            subject=record.subject,
            plane=record.plane,
            created_at=record.created_at.isoformat(),
            status=record.status
        )
        try:
            self.client.table(self.QUEUE_TABLE).insert({
                "id": item.id,
                "query": item.query,
                "subject": item.subject,
                "plane": item.plane,
                "created_at": item.created_at,
                "status": item.status
            }).execute()
        except Exception as e:
            logger.error(f"Error escalating query {record.query[:80]!r}: {e}")
            raise
        logger.info(f"Escalated query to trainer queue: {item.id}")
        return item

    def list_queue(self) -> List[TrainerQueueItem]:
        try:
            result = self.client.table(self.QUEUE_TABLE).select("*").order("created_at", desc=False).execute()
        except Exception as e:
            logger.error(f"Error reading trainer queue: {e}")
            raise
        return [
            TrainerQueueItem(
                id=row["id"],
                query=row["query"],
                subject=row.get("subject"),
                plane=row.get("plane"),
                created_at=row["created_at"],
                status=row.get("status") or "open"
            )
            for row in (result.data or [])
        ]

    def add_reply(self, text: str, queue_id: Optional[str] = None) -> TrainerReply:
        """
        Store a trainer reply and resolve the queue item it answers.

        Raises:
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Reply text cannot be empty")

        reply = TrainerReply(
            id=self._generate_id("tr"),
            queue_id=queue_id,
            text=text,
            created_at=datetime.now(timezone.utc).isoformat()
        )
        try:
            self.client.table(self.REPLIES_TABLE).insert({
                "id": reply.id,
                "queue_id": reply.queue_id,
                "text": reply.text,
                "created_at": reply.created_at
            }).execute()
            if queue_id:
                self.client.table(self.QUEUE_TABLE).update(
                    {"status": "resolved"}
                ).eq("id", queue_id).execute()
        except Exception as e:
            logger.error(f"Error storing trainer reply: {e}")
            raise
        logger.info(f"Stored trainer reply {reply.id} (queue item: {queue_id})")
        return reply

    def _generate_id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:12]}"
