# Services package init
"""
InkRead Backend — Services Layer
==================================

Service Inventory:
    - QuotaService:       access gate and credit ledger
    - ProcessingService:  batch intake → storage → OCR → charge
    - OCRDispatcher:      PDF text layer or image OCR engine per file
    - OCREngine (abstract) with TesseractEngine and GeminiEngine
    - PDFService:         page counting and text extraction (PyPDF2)
    - BlobStore:          upload bucket on local disk
    - AnalyticsService:   append-only event log
    - CleanupService:     removes uploads past the retention window

Services never touch HTTP objects; routes translate requests into calls.
"""
