import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, settings as default_settings
from database import (
    CHALLENGES,
    EVENTS,
    NEWEST_FIRST,
    TIPS,
    USER_CHALLENGES,
    USERS,
    Database,
    serialize,
    utcnow,
)
from filters import (
    FilterError,
    build_challenge_filter,
    build_upcoming_events_filter,
    build_user_challenge_filter,
)
from logging_config import setup_logging
from schemas import (
    Challenge as ChallengeSchema,
    ChallengeRead,
    ChallengeUpdate,
    Event as EventSchema,
    EventRead,
    Message,
    Tip as TipSchema,
    TipRead,
    User as UserSchema,
    UserChallenge as UserChallengeSchema,
    UserChallengeRead,
    UserChallengeUpdate,
    UserRead,
)

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND = "Route not found"
LATEST_TIPS = 5
UPCOMING_EVENTS = 4

router = APIRouter()


# Store access helpers
def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


@contextmanager
def store_errors(action: str):
    """Turn any unexpected failure inside the block into a 500 ``{message, error}``."""
    try:
        yield
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Error %s: %s", action, e)
        raise HTTPException(
            status_code=500,
            detail={"message": f"Error {action}", "error": str(e)},
        ) from e


def not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{entity} not found")


@router.get("/", response_class=PlainTextResponse)
def root():
    return "EcoTrack API is running"


# Users
@router.get("/users", response_model=List[UserRead])
def list_users(db: Database = Depends(get_db)):
    with store_errors("fetching users"):
        return serialize(db.find_documents(USERS, sort=NEWEST_FIRST))


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserSchema, db: Database = Depends(get_db)):
    with store_errors("creating user"):
        try:
            doc = db.create_document(USERS, payload)
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="Email already exists")
        logger.info("User %s created", doc["_id"])
        return serialize(doc)


@router.get("/users/{user_id}", response_model=UserRead)
def get_user(user_id: str, db: Database = Depends(get_db)):
    with store_errors("fetching user"):
        doc = db.find_by_id(USERS, user_id)
        if not doc:
            raise not_found("User")
        return serialize(doc)


@router.put("/users/{user_id}", response_model=UserRead)
def update_user(user_id: str, payload: UserSchema, db: Database = Depends(get_db)):
    with store_errors("updating user"):
        try:
            doc = db.update_by_id(USERS, user_id, payload.model_dump())
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="Email already exists")
        if not doc:
            raise not_found("User")
        return serialize(doc)


@router.delete("/users/{user_id}", response_model=Message)
def delete_user(user_id: str, db: Database = Depends(get_db)):
    with store_errors("deleting user"):
        if not db.delete_by_id(USERS, user_id):
            raise not_found("User")
    logger.info("User %s deleted", user_id)
    return {"message": "User deleted successfully"}


# Challenges
@router.get("/api/challenges", response_model=List[ChallengeRead])
def list_challenges(
    category: Optional[str] = Query(None, description="Comma separated categories"),
    minParticipants: Optional[str] = Query(None),
    maxParticipants: Optional[str] = Query(None),
    startFrom: Optional[str] = Query(None, description="Earliest startDate, e.g. 2025-01-31"),
    startTo: Optional[str] = Query(None, description="Latest startDate"),
    db: Database = Depends(get_db),
):
    q = build_challenge_filter(category, minParticipants, maxParticipants, startFrom, startTo)
    with store_errors("fetching challenges"):
        return serialize(db.find_documents(CHALLENGES, q, sort=NEWEST_FIRST))


@router.get("/api/challenges/{challenge_id}", response_model=ChallengeRead)
def get_challenge(challenge_id: str, db: Database = Depends(get_db)):
    with store_errors("fetching challenge"):
        doc = db.find_by_id(CHALLENGES, challenge_id)
        if not doc:
            raise not_found("Challenge")
        return serialize(doc)


@router.post("/api/challenges", response_model=ChallengeRead, status_code=status.HTTP_201_CREATED)
def create_challenge(payload: ChallengeSchema, db: Database = Depends(get_db)):
    with store_errors("creating challenge"):
        doc = db.create_document(CHALLENGES, payload)
        logger.info("Challenge %s created in %s", doc["_id"], payload.category)
        return serialize(doc)


@router.patch("/api/challenges/{challenge_id}", response_model=ChallengeRead)
def update_challenge(challenge_id: str, payload: ChallengeUpdate, db: Database = Depends(get_db)):
    with store_errors("updating challenge"):
        doc = db.update_by_id(CHALLENGES, challenge_id, payload.model_dump(exclude_unset=True))
        if not doc:
            raise not_found("Challenge")
        return serialize(doc)


@router.delete("/api/challenges/{challenge_id}", response_model=Message)
def delete_challenge(challenge_id: str, db: Database = Depends(get_db)):
    with store_errors("deleting challenge"):
        if not db.delete_by_id(CHALLENGES, challenge_id):
            raise not_found("Challenge")
    logger.info("Challenge %s deleted", challenge_id)
    return {"message": "Challenge deleted successfully"}


# User challenges
@router.get("/api/user-challenges", response_model=List[UserChallengeRead])
def list_user_challenges(userId: Optional[str] = Query(None), db: Database = Depends(get_db)):
    q = build_user_challenge_filter(userId)
    with store_errors("fetching user challenges"):
        docs = db.find_documents(USER_CHALLENGES, q, sort=NEWEST_FIRST)
        return serialize(db.populate(docs, "challengeId", CHALLENGES))


@router.post("/api/user-challenges", response_model=UserChallengeRead, status_code=status.HTTP_201_CREATED)
def join_challenge(payload: UserChallengeSchema, db: Database = Depends(get_db)):
    with store_errors("creating user challenge"):
        if not db.find_by_id(CHALLENGES, payload.challengeId):
            raise not_found("Challenge")
        data = payload.model_dump()
        data["challengeId"] = ObjectId(payload.challengeId)
        data["joinDate"] = data["joinDate"] or utcnow()
        doc = db.create_document(USER_CHALLENGES, data)
        logger.info("User %s joined challenge %s", payload.userId, payload.challengeId)
        return serialize(doc)


@router.get("/api/user-challenges/{user_challenge_id}", response_model=UserChallengeRead)
def get_user_challenge(user_challenge_id: str, db: Database = Depends(get_db)):
    with store_errors("fetching user challenge"):
        doc = db.find_by_id(USER_CHALLENGES, user_challenge_id)
        if not doc:
            raise not_found("User challenge")
        return serialize(db.populate([doc], "challengeId", CHALLENGES)[0])


@router.patch("/api/user-challenges/{user_challenge_id}", response_model=UserChallengeRead)
def update_user_challenge(user_challenge_id: str, payload: UserChallengeUpdate, db: Database = Depends(get_db)):
    with store_errors("updating user challenge"):
        doc = db.update_by_id(USER_CHALLENGES, user_challenge_id, payload.model_dump(exclude_none=True))
        if not doc:
            raise not_found("User challenge")
        return serialize(doc)


@router.delete("/api/user-challenges/{user_challenge_id}", response_model=Message)
def delete_user_challenge(user_challenge_id: str, db: Database = Depends(get_db)):
    with store_errors("deleting user challenge"):
        if not db.delete_by_id(USER_CHALLENGES, user_challenge_id):
            raise not_found("User challenge")
    return {"message": "User challenge deleted successfully"}


# Tips
@router.get("/api/tips", response_model=List[TipRead])
def list_tips(db: Database = Depends(get_db)):
    with store_errors("fetching tips"):
        return serialize(db.find_documents(TIPS, sort=NEWEST_FIRST, limit=LATEST_TIPS))


@router.post("/api/tips", response_model=TipRead, status_code=status.HTTP_201_CREATED)
def create_tip(payload: TipSchema, db: Database = Depends(get_db)):
    with store_errors("creating tip"):
        return serialize(db.create_document(TIPS, payload))


@router.get("/api/tips/{tip_id}", response_model=TipRead)
def get_tip(tip_id: str, db: Database = Depends(get_db)):
    with store_errors("fetching tip"):
        doc = db.find_by_id(TIPS, tip_id)
        if not doc:
            raise not_found("Tip")
        return serialize(doc)


@router.delete("/api/tips/{tip_id}", response_model=Message)
def delete_tip(tip_id: str, db: Database = Depends(get_db)):
    with store_errors("deleting tip"):
        if not db.delete_by_id(TIPS, tip_id):
            raise not_found("Tip")
    return {"message": "Tip deleted successfully"}


# Events
@router.get("/api/events", response_model=List[EventRead])
def list_events(db: Database = Depends(get_db)):
    q = build_upcoming_events_filter(datetime.now(timezone.utc))
    with store_errors("fetching events"):
        return serialize(db.find_documents(EVENTS, q, sort=[("date", 1)], limit=UPCOMING_EVENTS))


@router.post("/api/events", response_model=EventRead, status_code=status.HTTP_201_CREATED)
def create_event(payload: EventSchema, db: Database = Depends(get_db)):
    with store_errors("creating event"):
        return serialize(db.create_document(EVENTS, payload))


@router.get("/api/events/{event_id}", response_model=EventRead)
def get_event(event_id: str, db: Database = Depends(get_db)):
    with store_errors("fetching event"):
        doc = db.find_by_id(EVENTS, event_id)
        if not doc:
            raise not_found("Event")
        return serialize(doc)


@router.delete("/api/events/{event_id}", response_model=Message)
def delete_event(event_id: str, db: Database = Depends(get_db)):
    with store_errors("deleting event"):
        if not db.delete_by_id(EVENTS, event_id):
            raise not_found("Event")
    return {"message": "Event deleted successfully"}


# Error rendering
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405 or (exc.status_code == 404 and exc.detail == "Not Found"):
        # raised by the router itself, not by a handler
        return JSONResponse(status_code=404, content={"message": ROUTE_NOT_FOUND})
    content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        problems.append(f"{'.'.join(loc) or 'body'}: {err.get('msg')}")
    return JSONResponse(status_code=400, content={"message": "; ".join(problems) or "Invalid request"})


async def filter_exception_handler(request: Request, exc: FilterError):
    return JSONResponse(status_code=400, content={"message": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    if app.state.db is None:
        try:
            app.state.db = Database.connect(cfg)
        except PyMongoError as e:
            logger.error("MongoDB Connection Error: %s", e)
    if app.state.db is not None:
        app.state.db.init()
    logger.info("EcoTrack server running on port %s", cfg.port)
    yield
    if app.state.db is not None:
        app.state.db.close()


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the API.

    ``database`` lets callers hand in a ready connection handle; when it is
    omitted one is opened from ``settings`` during startup.
    """
    settings = settings or default_settings
    setup_logging(settings)

    app = FastAPI(title=settings.project_name, version=settings.api_version, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(FilterError, filter_exception_handler)

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
