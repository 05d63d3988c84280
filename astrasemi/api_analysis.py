"""
Document Analysis API
=====================

- POST /api/module1 - CSV summary
- POST /api/module2 - Text interpreter (summary | email | update)
- POST /api/module3 - Image explainer
- POST /api/module4 - Glossary
"""

from fastapi import APIRouter, Depends

from .analysis import explain_image, explain_term, interpret_text, summarize_csv
from .auth import AuthContext, require_user
from .schemas import (
    CsvSummaryRequest,
    CsvSummaryResponse,
    GlossaryRequest,
    GlossaryResponse,
    ImageRequest,
    ImageResponse,
    InterpretRequest,
)

router = APIRouter(tags=["analysis"])


@router.post("/module1", response_model=CsvSummaryResponse)
async def csv_summary(request: CsvSummaryRequest, auth: AuthContext = Depends(require_user)):
    return await summarize_csv(request.data, request.headers, request.rowCount, request.qualityNotes)


@router.post("/module2")
async def text_interpreter(request: InterpretRequest, auth: AuthContext = Depends(require_user)):
    return await interpret_text(request.text, request.mode)


@router.post("/module3", response_model=ImageResponse)
async def image_explainer(request: ImageRequest, auth: AuthContext = Depends(require_user)):
    return await explain_image(request.image, request.mimeType)


@router.post("/module4", response_model=GlossaryResponse)
async def glossary(request: GlossaryRequest, auth: AuthContext = Depends(require_user)):
    return await explain_term(request.term, request.level)
