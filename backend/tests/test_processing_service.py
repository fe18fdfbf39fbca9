"""
InkRead Backend — Processing Service Tests
============================================

What we test:
    ✅ Batch limits: count, MIME type, size, PDF pages (messages name the file)
    ✅ Successful batch: blobs + rows stored, text combined, credit charged
    ✅ Guest batch marks the IP as used
    ✅ Gate runs before validation
    ✅ OCR failure charges nothing but keeps stored uploads for cleanup
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from inkread.exceptions import OCRServiceError, QuotaExceededError, ValidationError
from inkread.models.analytics import AnalyticsEvent
from inkread.models.credits import IpUsage, UserCredit
from inkread.models.upload import UploadedFile
from inkread.services.ocr_dispatch import OCRDispatcher
from inkread.services.processing_service import ProcessingService, UploadedPayload

from conftest import TEST_USER_ID, make_pdf, make_png

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
FIVE_MB = 5 * 1024 * 1024


def png(name: str = "page.png") -> UploadedPayload:
    return UploadedPayload(file_name=name, mime_type="image/png", content=make_png())


async def _count(db_session, model) -> int:
    result = await db_session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestBatchValidation:

    def setup_method(self):
        self.service = ProcessingService()

    @pytest.mark.asyncio
    async def test_no_files(self):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.validate_batch([])
        assert exc_info.value.message == "No files provided"

    @pytest.mark.asyncio
    async def test_too_many_files(self):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.validate_batch([png(f"p{i}.png") for i in range(4)])
        assert exc_info.value.message == "Maximum 3 files allowed"

    @pytest.mark.asyncio
    async def test_three_files_accepted(self):
        await self.service.validate_batch([png(f"p{i}.png") for i in range(3)])

    @pytest.mark.asyncio
    async def test_invalid_type_names_file(self):
        upload = UploadedPayload(file_name="notes.txt", mime_type="text/plain", content=b"hi")
        with pytest.raises(ValidationError) as exc_info:
            await self.service.validate_batch([upload])
        assert exc_info.value.message == "Invalid file type: notes.txt"

    @pytest.mark.asyncio
    async def test_exactly_five_mb_accepted(self):
        upload = UploadedPayload(file_name="big.jpg", mime_type="image/jpeg", content=b"\0" * FIVE_MB)
        await self.service.validate_batch([upload])

    @pytest.mark.asyncio
    async def test_over_five_mb_rejected(self):
        upload = UploadedPayload(file_name="big.jpg", mime_type="image/jpeg", content=b"\0" * (FIVE_MB + 1))
        with pytest.raises(ValidationError) as exc_info:
            await self.service.validate_batch([upload])
        assert exc_info.value.message == "File too large: big.jpg. Max 5MB"

    @pytest.mark.asyncio
    async def test_pdf_page_limit(self):
        ok = UploadedPayload(file_name="twenty.pdf", mime_type="application/pdf", content=make_pdf(20))
        await self.service.validate_batch([ok])

        too_long = UploadedPayload(file_name="long.pdf", mime_type="application/pdf", content=make_pdf(21))
        with pytest.raises(ValidationError) as exc_info:
            await self.service.validate_batch([too_long])
        assert exc_info.value.message == "PDF has too many pages: long.pdf. Max 20 pages"

    @pytest.mark.asyncio
    async def test_unparseable_pdf_counts_as_one_page(self):
        upload = UploadedPayload(file_name="odd.pdf", mime_type="application/pdf", content=b"%PDF-garbage")
        await self.service.validate_batch([upload])


class TestProcess:

    @pytest.fixture(autouse=True)
    def _service(self, blob_store):
        self.store = blob_store
        self.service = ProcessingService(store=blob_store)

    @pytest.mark.asyncio
    async def test_user_batch_success(self, db_session, user_caller, dispatcher, fake_engine):
        fake_engine.texts = ["first page", "second page"]

        result = await self.service.process(
            db_session, user_caller, [png("a.png"), png("b.png")], dispatcher, NOW
        )

        assert result.text == "first page\n\nsecond page"
        assert [f.file_name for f in result.files] == ["a.png", "b.png"]
        assert result.credits_remaining == 2

        rows = (await db_session.execute(select(UploadedFile))).scalars().all()
        assert len(rows) == 2
        for row in rows:
            assert row.user_id == TEST_USER_ID
            assert row.file_path.startswith(f"{TEST_USER_ID}/")
            assert await self.store.exists(row.file_path)

        events = (await db_session.execute(select(AnalyticsEvent))).scalars().all()
        assert [e.event_type for e in events] == ["process_completed"]
        assert events[0].event_metadata["fileCount"] == 2

    @pytest.mark.asyncio
    async def test_mixed_pdf_and_image(self, db_session, user_caller, fake_engine):
        pdf = AsyncMock()
        pdf.count_pages = AsyncMock(return_value=2)
        pdf.extract_text = AsyncMock(return_value="pdf body")
        service = ProcessingService(store=self.store, pdf=pdf)
        dispatcher = OCRDispatcher(engine=fake_engine, pdf=pdf)
        fake_engine.texts = ["image body"]

        uploads = [
            UploadedPayload(file_name="doc.pdf", mime_type="application/pdf", content=b"%PDF"),
            png("photo.png"),
        ]
        result = await service.process(db_session, user_caller, uploads, dispatcher, NOW)

        assert result.text == "pdf body\n\nimage body"
        assert result.files[0].mime_type == "application/pdf"

    @pytest.mark.asyncio
    async def test_combined_text_is_trimmed(self, db_session, user_caller, dispatcher, fake_engine):
        fake_engine.texts = ["", "only text"]

        result = await self.service.process(
            db_session, user_caller, [png("blank.png"), png("text.png")], dispatcher, NOW
        )

        assert result.text == "only text"

    @pytest.mark.asyncio
    async def test_guest_batch_marks_ip(self, db_session, guest_caller, dispatcher):
        result = await self.service.process(db_session, guest_caller, [png()], dispatcher, NOW)

        assert result.credits_remaining is None
        usage = await db_session.get(IpUsage, guest_caller.ip_address)
        assert usage.used is True

        row = (await db_session.execute(select(UploadedFile))).scalar_one()
        assert row.user_id is None
        assert row.file_path.startswith(f"{guest_caller.ip_address}/")

    @pytest.mark.asyncio
    async def test_gate_runs_before_validation(self, db_session, guest_caller, dispatcher):
        db_session.add(IpUsage(ip_address=guest_caller.ip_address, used=True, used_at=NOW))
        await db_session.flush()

        with pytest.raises(QuotaExceededError):
            await self.service.process(db_session, guest_caller, [], dispatcher, NOW)

    @pytest.mark.asyncio
    async def test_invalid_batch_stores_nothing(self, db_session, user_caller, dispatcher):
        uploads = [png("ok.png"), UploadedPayload(file_name="bad.txt", mime_type="text/plain", content=b"x")]

        with pytest.raises(ValidationError):
            await self.service.process(db_session, user_caller, uploads, dispatcher, NOW)

        assert await _count(db_session, UploadedFile) == 0

    @pytest.mark.asyncio
    async def test_ocr_failure_charges_nothing(self, db_session, user_caller, failing_engine):
        dispatcher = OCRDispatcher(engine=failing_engine)

        with pytest.raises(OCRServiceError) as exc_info:
            await self.service.process(db_session, user_caller, [png("broken.png")], dispatcher, NOW)
        assert "broken.png" in exc_info.value.message

        credit = await db_session.get(UserCredit, TEST_USER_ID, populate_existing=True)
        assert credit.credits_remaining == 3
        # Stored before OCR ran; left for the cleanup job
        row = (await db_session.execute(select(UploadedFile))).scalar_one()
        assert await self.store.exists(row.file_path)
        assert await _count(db_session, AnalyticsEvent) == 0
