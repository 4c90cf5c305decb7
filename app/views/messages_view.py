from app.core.optimistic import MutationResult, Outcome
from app.core.request_guard import LatestRequestGuard
from app.database import utcnow
from app.schemas.message_schema import ConversationSummary, MessageOut
from app.services import message_service
from app.views.base import View, dump


class MessagesView(View):
    """
    Conversation summaries plus the one open thread.

    Messages are keyed by id everywhere: an optimistic send, its insert
    echo from realtime and a later read_at update all land on one entry.
    """

    name = "messages"

    def __init__(self, gateway, user_id, toasts=None):
        super().__init__(gateway, user_id, toasts)
        self.conversations: list[ConversationSummary] = []
        self.active_partner_id: str | None = None
        self.thread: list[MessageOut] = []
        self.query = ""
        # Summaries and the open thread load independently
        self.summary_guard = LatestRequestGuard()
        self.thread_guard = LatestRequestGuard()

    @property
    def unread_total(self) -> int:
        return sum(c.unread_count for c in self.conversations)

    def search(self, query: str | None) -> None:
        self.query = query or ""
        self.changed()

    # --------------------------------------------------
    # Loads
    # --------------------------------------------------
    async def refresh_conversations(self) -> None:
        ticket = self.summary_guard.issue("conversations")
        result = await self.fetch(
            lambda: message_service.conversations(self.gateway, self.user_id),
            "Could not load conversations",
        )
        if result is None or not ticket.current:
            return
        self.conversations = result
        self.changed()

    async def open(self, partner_id: str) -> None:
        self.active_partner_id = partner_id
        self.thread = []
        self.changed()

        ticket = self.thread_guard.issue(partner_id)
        result = await self.fetch(
            lambda: message_service.thread(self.gateway, self.user_id, partner_id),
            "Could not load messages",
        )
        # A newer open() or close() wins
        if result is None or not ticket.current:
            return

        # Keep anything realtime delivered while the history was loading
        known = {m.id for m in result}
        self.thread = result + [m for m in self.thread if m.id not in known]
        self.changed()
        await self.mark_thread_read()

    def close(self) -> None:
        self.thread_guard.cancel()
        self.active_partner_id = None
        self.thread = []
        self.changed()

    # --------------------------------------------------
    # Local merges (also used by the realtime controller)
    # --------------------------------------------------
    def _upsert(self, message: MessageOut) -> bool:
        for i, existing in enumerate(self.thread):
            if existing.id == message.id:
                self.thread[i] = message
                return False
        self.thread.append(message)
        return True

    def merge_message(self, row: dict) -> bool:
        """Insert or replace by id. Returns True when the message is new."""
        message = MessageOut(**row)
        added = self._upsert(message)
        self._touch_summary(message)
        self.changed()
        return added

    def remove_message(self, message_id: str) -> None:
        self.thread = [m for m in self.thread if m.id != message_id]
        self.changed()

    def has_conversation(self, partner_id: str) -> bool:
        return any(c.partner_id == partner_id for c in self.conversations)

    def _touch_summary(self, message: MessageOut) -> None:
        partner = message.receiver_id if message.sender_id == self.user_id else message.sender_id
        for summary in self.conversations:
            if summary.partner_id == partner:
                summary.last_message_id = message.id
                summary.last_message = message.content
                summary.last_message_at = message.created_at
                summary.last_sender_id = message.sender_id
                return

    # --------------------------------------------------
    # Actions
    # --------------------------------------------------
    async def send(self, content: str) -> MutationResult:
        text = (content or "").strip()
        partner = self.active_partner_id
        if not text or partner is None:
            return MutationResult(Outcome.SKIPPED)

        message = MessageOut(
            id=message_service.new_message_id(),
            sender_id=self.user_id,
            receiver_id=partner,
            content=text,
            created_at=utcnow(),
        )

        def apply():
            self._upsert(message)
            self._touch_summary(message)
            self.changed()

        def restore(_):
            self.remove_message(message.id)

        def reconcile(saved: MessageOut):
            if self.active_partner_id == partner:
                self._upsert(saved)
                self.changed()

        return await self.optimistic.run(
            ("send", message.id),
            apply=apply,
            mutate=lambda: message_service.send(
                self.gateway, self.user_id, partner, text, message_id=message.id
            ),
            restore=restore,
            reconcile=reconcile,
            error_message="Message failed to send",
        )

    async def mark_read(self, message_ids) -> MutationResult:
        wanted = set(message_ids)
        ids = [
            m.id for m in self.thread
            if m.id in wanted and m.receiver_id == self.user_id and m.read_at is None
        ]
        if not ids:
            return MutationResult(Outcome.SKIPPED)

        partner = self.active_partner_id
        summary = next((c for c in self.conversations if c.partner_id == partner), None)
        stamp = utcnow()

        def snapshot():
            return summary.unread_count if summary else None

        def apply():
            self.thread = [
                m.model_copy(update={"read_at": stamp}) if m.id in ids else m
                for m in self.thread
            ]
            if summary is not None:
                summary.unread_count = max(0, summary.unread_count - len(ids))
            self.changed()

        def restore(unread):
            self.thread = [
                m.model_copy(update={"read_at": None}) if m.id in ids else m
                for m in self.thread
            ]
            if summary is not None:
                summary.unread_count = unread
            self.changed()

        return await self.optimistic.run(
            ("read", tuple(ids)),
            snapshot=snapshot,
            apply=apply,
            mutate=lambda: message_service.mark_read(self.gateway, self.user_id, ids),
            restore=restore,
            error_message="Could not mark messages as read",
        )

    async def mark_thread_read(self) -> MutationResult:
        return await self.mark_read([m.id for m in self.thread])

    def state(self) -> dict:
        return {
            "conversations": dump(
                message_service.filter_conversations(self.conversations, self.query)
            ),
            "active_partner_id": self.active_partner_id,
            "thread": dump(self.thread),
            "unread_total": self.unread_total,
            "query": self.query,
            "loading": self.loading,
            "error": self.error,
        }
