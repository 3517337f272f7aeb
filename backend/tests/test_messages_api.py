"""End-to-end tests for POST /messages/send."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from aether.ai.llm import FALLBACK_REPLY, ResponseGenerator
from aether.core.errors import StorageError
from aether.db.models import AttachmentText, Message
from aether.repository.chat_repository import ChatRepository
from aether.services.context_assembler import REVIEW_PLACEHOLDER

SEND_URL = "/api/v1/messages/send"


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_text_message_creates_chat(self, client, generator):
        response = await client.post(SEND_URL, data={"message": "What should I do with $10,000?"})

        assert response.status_code == 200
        body = response.json()
        assert body["user_message"]["role"] == "user"
        assert body["user_message"]["content"] == "What should I do with $10,000?"
        assert body["ai_message"]["role"] == "assistant"
        assert body["ai_message"]["content"] == "Build a three-month emergency fund first."
        assert body["warnings"] == []
        generator.generate_title.assert_awaited_once_with("What should I do with $10,000?")

        chats = (await client.get("/api/v1/chats/")).json()
        assert [c["id"] for c in chats] == [body["chat_id"]]
        assert chats[0]["title"] == "Savings plan"

    @pytest.mark.asyncio
    async def test_requires_message_or_file(self, client):
        response = await client.post(SEND_URL, data={"message": "   "})
        assert response.status_code == 400
        assert response.json()["detail"] == "Message or attachment required"

    @pytest.mark.asyncio
    async def test_attachment_only_uses_placeholders(self, client, generator):
        response = await client.post(
            SEND_URL,
            data={"message": ""},
            files={"files": ("budget.csv", b"rent,1200\n", "text/csv")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["user_message"]["content"] == "[Attachment]"
        assert body["ai_message"]["content"]
        [attachment] = body["user_message"]["attachments"]
        assert attachment["name"] == "budget.csv"
        assert attachment["mime_type"] == "text/csv"
        assert attachment["size"] == 10
        assert attachment["summary"] is None
        assert "/api/v1/files/download/" in attachment["url"]

        sent_messages = generator.generate_reply.call_args.args[0]
        assert sent_messages[-1] == {"role": "user", "content": REVIEW_PLACEHOLDER}
        generator.generate_title.assert_not_called()

        chats = (await client.get("/api/v1/chats/")).json()
        assert chats[0]["title"] == "New conversation"

    @pytest.mark.asyncio
    async def test_pdf_text_reaches_model_and_side_table(self, client, generator, session_maker):
        with patch(
            "aether.services.attachment_pipeline.extract_pdf_text",
            AsyncMock(return_value="Balance:   $500"),
        ):
            response = await client.post(
                SEND_URL,
                data={"message": "Review my statement"},
                files={"files": ("statement.pdf", b"%PDF-1.4", "application/pdf")},
            )

        assert response.status_code == 200
        body = response.json()
        [attachment] = body["user_message"]["attachments"]
        assert attachment["summary"] == "Balance: $500"

        last = generator.generate_reply.call_args.args[0][-1]["content"]
        assert last.startswith("Review my statement\n\nAttached files:\n")
        assert "File: statement.pdf\nBalance: $500" in last

        async with session_maker() as session:
            rows = (await session.execute(select(AttachmentText))).scalars().all()
        assert len(rows) == 1
        assert rows[0].attachment_id == attachment["id"]
        assert rows[0].message_id == body["user_message"]["id"]
        assert rows[0].extracted_text == "Balance: $500"

    @pytest.mark.asyncio
    async def test_history_excludes_new_message(self, client, generator):
        first = (await client.post(SEND_URL, data={"message": "hi"})).json()

        response = await client.post(
            SEND_URL, data={"message": "And bonds?", "chat_id": first["chat_id"]}
        )

        assert response.status_code == 200
        assert response.json()["chat_id"] == first["chat_id"]
        sent = generator.generate_reply.call_args.args[0]
        assert sent == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "Build a three-month emergency fund first."},
            {"role": "user", "content": "And bonds?"},
        ]
        assert generator.generate_title.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_chat_is_404(self, client):
        response = await client.post(SEND_URL, data={"message": "hi", "chat_id": "missing"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_web_search_flag_forwarded(self, client, generator):
        await client.post(SEND_URL, data={"message": "Latest CPI?", "web_search": "true"})
        assert generator.generate_reply.call_args.kwargs["web_search_enabled"] is True

    @pytest.mark.asyncio
    async def test_provider_failure_still_delivers_fallback_reply(self, client, generator):
        real = ResponseGenerator()
        generator.generate_reply.side_effect = real.generate_reply
        with patch.object(
            ResponseGenerator, "get_llm", side_effect=ValueError("Google API key not configured")
        ):
            response = await client.post(
                SEND_URL,
                data={"message": ""},
                files={"files": ("notes.xlsx", b"xlsx", "application/vnd.ms-excel")},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["user_message"]["content"] == "[Attachment]"
        assert body["ai_message"]["content"] == FALLBACK_REPLY

    @pytest.mark.asyncio
    async def test_storage_failure_is_500(self, client, storage):
        with patch.object(storage, "upload", AsyncMock(side_effect=StorageError("bucket offline"))):
            response = await client.post(
                SEND_URL,
                data={"message": "see file"},
                files={"files": ("a.txt", b"x", "text/plain")},
            )
        assert response.status_code == 500
        assert "bucket offline" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_attachment_text_failure_is_a_warning(self, client):
        with patch(
            "aether.services.attachment_pipeline.extract_pdf_text",
            AsyncMock(return_value="Holdings: VTI"),
        ), patch.object(
            ChatRepository,
            "add_attachment_texts",
            AsyncMock(side_effect=SQLAlchemyError("disk full")),
        ):
            response = await client.post(
                SEND_URL,
                data={"message": "thoughts?"},
                files={"files": ("p.pdf", b"%PDF", "application/pdf")},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["warnings"] == ["Attachment text could not be saved"]
        assert body["user_message"]["content"] == "thoughts?"

        chat = (await client.get(f"/api/v1/chats/{body['chat_id']}")).json()
        assert [m["role"] for m in chat["messages"]] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_attachment_text_rejected_by_database_is_a_warning(self, client, session_maker):
        def row_without_text(**record):
            return AttachmentText(**{**record, "extracted_text": None})

        with patch(
            "aether.services.attachment_pipeline.extract_pdf_text",
            AsyncMock(return_value="Holdings: VTI"),
        ), patch(
            "aether.repository.chat_repository.AttachmentText",
            side_effect=row_without_text,
        ):
            response = await client.post(
                SEND_URL,
                data={"message": "thoughts?"},
                files={"files": ("p.pdf", b"%PDF", "application/pdf")},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["warnings"] == ["Attachment text could not be saved"]
        assert body["user_message"]["content"] == "thoughts?"
        assert body["ai_message"]["content"] == "Build a three-month emergency fund first."

        async with session_maker() as session:
            messages = (
                await session.execute(select(Message).where(Message.chat_id == body["chat_id"]))
            ).scalars().all()
            texts = (await session.execute(select(AttachmentText))).scalars().all()
        assert sorted(m.role for m in messages) == ["assistant", "user"]
        assert {m.id for m in messages} == {body["user_message"]["id"], body["ai_message"]["id"]}
        assert texts == []


class TestChooseTitle:
    @pytest.mark.asyncio
    async def test_empty_generated_title_falls_back_to_cleaned_message(self, chat_service, generator):
        generator.generate_title.return_value = ""
        title = await chat_service.choose_title('"Budget: 2025" review\nsecond line')
        assert title == "Budget 2025 review"

    @pytest.mark.asyncio
    async def test_fallback_is_clamped(self, chat_service, generator):
        generator.generate_title.return_value = ""
        title = await chat_service.choose_title("Q: " + "x" * 80)
        assert title == "Q " + "x" * 48

    @pytest.mark.asyncio
    async def test_unusable_message_gets_default(self, chat_service, generator):
        generator.generate_title.return_value = ""
        assert await chat_service.choose_title('"::"') == "New conversation"


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, client):
        with patch("aether.core.auth.settings") as mock_settings:
            mock_settings.auth_enabled = True
            response = await client.post(SEND_URL, data={"message": "hi"})
        assert response.status_code == 401
