"""
Voice Mock Interview - FastAPI Backend

Generates a question set for a role, runs a turn-based spoken interview and
scores the answers:
- Question generation with defensive parsing of model output
- Turn engine that always advances, whatever the model returns
- Batch scoring and a narrative report at finalization

Compatible with any llama.cpp-style /completion REST API.
"""
import sys
import os
import logging
import tempfile
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from utils.config import config
from utils.errors import InterviewError
from llm.client import LLMClient, TextGenerator
from models.schemas import (
    DoubtRequest,
    DoubtResponse,
    FeedbackResponse,
    GenerateRequest,
    GenerateResponse,
    InterviewIdRequest,
    OkResponse,
    SaveAnswersRequest,
    TurnRequest,
    TurnResult,
)
from interview import ConversationTurnEngine, DoubtResponder, QuestionGenerator, ScoringEngine
from storage import SessionStore, build_session_store

logger = logging.getLogger(__name__)


# ================================================================
# Service wiring
# ================================================================

@dataclass
class Services:
    store: SessionStore
    llm: TextGenerator
    generator: QuestionGenerator
    conversation: ConversationTurnEngine
    scoring: ScoringEngine
    doubts: DoubtResponder


def build_services(store: Optional[SessionStore] = None, llm: Optional[TextGenerator] = None) -> Services:
    """Wire the interview services around one store and one LLM client."""
    store = store or build_session_store()
    llm = llm or LLMClient()
    return Services(
        store=store,
        llm=llm,
        generator=QuestionGenerator(llm, store),
        conversation=ConversationTurnEngine(llm, store),
        scoring=ScoringEngine(llm, store),
        doubts=DoubtResponder(llm),
    )


# ================================================================
# Whisper Model (server-side STT)
# ================================================================

# Lazy loading of Whisper model to avoid startup delay
_whisper_model = None


def get_whisper_model():
    """Lazy load the Whisper model (requires the 'speech' extra)."""
    global _whisper_model
    if _whisper_model is None:
        from faster_whisper import WhisperModel
        _whisper_model = WhisperModel(
            config.whisper.model_path,
            device=config.whisper.device,
            compute_type=config.whisper.compute_type
        )
    return _whisper_model


# ================================================================
# App factory
# ================================================================

def create_app(services: Optional[Services] = None) -> FastAPI:
    services = services or build_services()

    app = FastAPI(
        title="Voice Mock Interview API",
        description="Voice-driven mock technical interviews with AI scoring",
        version="1.0.0"
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------

    @app.exception_handler(InterviewError)
    async def interview_error_handler(request: Request, exc: InterviewError):
        if exc.status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.url.path} rejected ({exc.status_code}): {exc}")
        body = {"error": str(exc)}
        field = getattr(exc, "field", "")
        if field:
            body["field"] = field
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "message": e.get("msg", "")}
            for e in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # ------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------

    @app.get("/health")
    def health():
        """
        Health check endpoint.

        Includes the text-generation server status when the client supports a health check.
        """
        health_check = getattr(services.llm, "health_check", None)
        if health_check is None:
            return {"status": "ok"}
        llm_ok = health_check()
        return {"status": "ok" if llm_ok else "degraded", "llm": "ok" if llm_ok else "unreachable"}

    @app.post("/interview/generate", response_model=GenerateResponse)
    def generate_questions(request: GenerateRequest, x_user_id: Optional[str] = Header(default=None)):
        """
        Generate the question set and create the session.

        Returns:
            interviewId and the ordered questions
        """
        owner = x_user_id or config.interview.default_owner
        session, questions = services.generator.generate(request, owner)
        return GenerateResponse(interview_id=session.id, questions=questions)

    @app.post("/interview/start-attempt", response_model=OkResponse)
    def start_attempt(request: InterviewIdRequest):
        """Mark the attempt started and clear any previous transcript."""
        services.conversation.start_attempt(request.interview_id)
        return OkResponse()

    @app.post("/interview/restart-attempt", response_model=OkResponse)
    def restart_attempt(request: InterviewIdRequest):
        """Start over from any state, dropping answers and feedback."""
        services.conversation.restart_attempt(request.interview_id)
        return OkResponse()

    @app.post("/interview/voice-respond", response_model=TurnResult)
    def voice_respond(request: TurnRequest):
        """
        Accept the candidate's utterance and return the interviewer's reply.

        Returns:
            aiReply, nextQuestion (or null) and endInterview
        """
        return services.conversation.turn(
            request.interview_id,
            request.question_index,
            request.user_utterance,
            request.transcript,
        )

    @app.post("/interview/save-answers", response_model=FeedbackResponse)
    def save_answers(request: SaveAnswersRequest):
        """Score all answers and write the final report."""
        feedback = services.scoring.finalize(request.interview_id, request.answers)
        return FeedbackResponse(feedback=feedback)

    @app.post("/interview/doubt", response_model=DoubtResponse)
    def ask_doubt(request: DoubtRequest):
        """Answer a clarifying question. Stateless."""
        return DoubtResponse(answer=services.doubts.answer(request.question, request.doubt))

    @app.post("/interview/transcribe")
    def transcribe(file: UploadFile = File(...)):
        """
        Transcribe an uploaded audio answer for clients without local STT.

        Returns:
            The transcript text
        """
        content_type = file.content_type or ""
        if "audio" not in content_type and "video" not in content_type and "webm" not in content_type:
            raise HTTPException(
                status_code=400,
                detail=f"File must be audio or video. Got: {content_type}"
            )

        with tempfile.NamedTemporaryFile(delete=False, suffix=".wav") as tmp:
            tmp.write(file.file.read())
            audio_path = tmp.name

        try:
            segments, _ = get_whisper_model().transcribe(audio_path)
            text = " ".join(s.text.strip() for s in segments).strip()
        finally:
            os.unlink(audio_path)

        return {"transcript": text}

    @app.get("/interview/{interview_id}")
    def get_interview(interview_id: str):
        """Full session document."""
        return services.store.load(interview_id).to_document()

    @app.get("/dashboard")
    def dashboard(x_user_id: Optional[str] = Header(default=None)):
        """The caller's interviews, newest first."""
        owner = x_user_id or config.interview.default_owner
        return {"interviews": [s.to_document() for s in services.store.list(owner)]}

    return app


app = create_app()


# ================================================================
# Main Entry Point
# ================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
