import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone, timedelta
from typing import List, Optional

from fastapi import FastAPI, Depends, Header
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings, get_settings
from database import (
    ALERTS,
    PLANS,
    PROGRESS,
    USERS,
    create_document,
    ensure_indexes,
    get_db,
    get_documents,
    now_iso,
    serialize,
    to_object_id,
)
from errors import (
    AuthenticationFailure,
    AuthorizationInvalid,
    AuthorizationMissing,
    NotFound,
    ValidationConflict,
    handler_boundary,
    register_error_handlers,
)
from preparedness import dashboard_stats, training_progress
from security import TokenClaims, TokenError, create_token, decode_token, hash_password, verify_password

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.uses_default_secret:
        logger.warning("JWT_SECRET is not set, tokens are signed with the default secret")
    try:
        ensure_indexes(get_db(settings))
    except PyMongoError as e:
        logger.warning("Could not create indexes: %s", e)
    yield


app = FastAPI(title="Disaster Preparedness API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


# ---------------------------
# Utility helpers
# ---------------------------

def public_user(user: dict, with_progress: bool = False) -> dict:
    out = {
        "id": str(user["_id"]),
        "fullName": user.get("fullName"),
        "email": user.get("email"),
        "region": user.get("region"),
    }
    if with_progress:
        out["progress"] = user.get("progress") or {}
    return out


def load_user(db: Database, user_id: str) -> dict:
    user = db[USERS].find_one({"_id": to_object_id(user_id)})
    if not user:
        raise LookupError(f"User {user_id} not found")
    return user


def active_alerts(db: Database, region: Optional[str]) -> List[dict]:
    return get_documents(
        db, ALERTS, {"region": region, "expiresAt": {"$gt": now_iso()}}, newest_first=True
    )


# ---------------------------
# Request/response models
# ---------------------------

class RegisterRequest(BaseModel):
    fullName: str
    email: str
    password: str
    phone: Optional[str] = None
    region: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    message: str
    token: str
    user: dict


class ProgressUpdateRequest(BaseModel):
    courseId: str
    courseName: Optional[str] = None
    progress: float = 0
    completed: bool = False


class ContactIn(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class PlanCreateRequest(BaseModel):
    planName: Optional[str] = None
    planType: Optional[str] = None
    steps: List[str] = []
    supplies: List[str] = []
    contacts: List[ContactIn] = []


class PlanUpdateRequest(BaseModel):
    planName: Optional[str] = None
    planType: Optional[str] = None
    steps: Optional[List[str]] = None
    supplies: Optional[List[str]] = None
    contacts: Optional[List[ContactIn]] = None
    completed: Optional[bool] = None


class PlanResponse(BaseModel):
    id: str
    userId: str
    planName: Optional[str] = None
    planType: Optional[str] = None
    steps: List[str] = []
    supplies: List[str] = []
    contacts: List[ContactIn] = []
    completed: bool = False
    createdAt: Optional[str] = None


class PlanMessageResponse(BaseModel):
    message: str
    plan: PlanResponse


class ProgressResponse(BaseModel):
    id: str
    userId: str
    courseId: str
    courseName: Optional[str] = None
    progress: float = 0
    completed: bool = False
    lastUpdated: Optional[str] = None


class ProgressMessageResponse(BaseModel):
    message: str
    progress: ProgressResponse


class AlertResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    severity: Optional[str] = None
    region: Optional[str] = None
    expiresAt: str
    createdAt: Optional[str] = None


class DashboardStats(BaseModel):
    trainingProgress: int
    plansReady: int
    totalPlans: int
    preparednessScore: int


class DashboardResponse(BaseModel):
    user: dict
    stats: DashboardStats
    progress: List[ProgressResponse]
    plans: List[PlanResponse]
    alerts: List[AlertResponse]


class MessageResponse(BaseModel):
    message: str


# ---------------------------
# Auth dependency (bearer token)
# ---------------------------

def get_current_user(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> TokenClaims:
    parts = (authorization or "").split()
    token = parts[1] if len(parts) > 1 else None
    if not token:
        raise AuthorizationMissing()
    try:
        return decode_token(token, settings)
    except TokenError as e:
        logger.info("Rejected token: %s (%s)", type(e).__name__, e)
        raise AuthorizationInvalid() from e


# ---------------------------
# Health & schema endpoints
# ---------------------------

@app.get("/")
def read_root():
    return {"message": "Disaster Preparedness Backend API"}


@app.get("/schema")
def get_schema():
    from schemas import User, Progress, Plan, Alert
    return {
        "user": User.model_json_schema(),
        "progress": Progress.model_json_schema(),
        "plan": Plan.model_json_schema(),
        "alert": Alert.model_json_schema(),
    }


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": db.name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# ---------------------------
# Auth routes
# ---------------------------

@app.post("/api/register", response_model=AuthResponse, status_code=201)
def register(
    req: RegisterRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    with handler_boundary("Server error during registration"):
        if db[USERS].find_one({"email": req.email}):
            raise ValidationConflict("User already exists")

        user_doc = {
            "fullName": req.fullName,
            "email": req.email,
            "password": hash_password(req.password, settings.bcrypt_rounds),
            "phone": req.phone,
            "region": req.region,
            "createdAt": now_iso(),
            "progress": {"trainingCompleted": 0, "plansCreated": 0, "preparednessScore": 0},
        }
        try:
            result = db[USERS].insert_one(user_doc)
        except DuplicateKeyError:
            raise ValidationConflict("User already exists")
        user_doc["_id"] = result.inserted_id

        token = create_token(str(result.inserted_id), req.email, settings)
        logger.info("Registered user %s", result.inserted_id)
        return {
            "message": "User created successfully",
            "token": token,
            "user": public_user(user_doc),
        }


@app.post("/api/login", response_model=AuthResponse)
def login(
    req: LoginRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    with handler_boundary("Server error during login"):
        user = db[USERS].find_one({"email": req.email})
        if not user or not verify_password(req.password, user.get("password", "")):
            logger.info("Failed login attempt")
            raise AuthenticationFailure("Invalid credentials")

        token = create_token(str(user["_id"]), user["email"], settings)
        return {
            "message": "Login successful",
            "token": token,
            "user": public_user(user, with_progress=True),
        }


# ---------------------------
# Dashboard & training progress
# ---------------------------

@app.get("/api/dashboard", response_model=DashboardResponse)
def dashboard(current: TokenClaims = Depends(get_current_user), db: Database = Depends(get_db)):
    with handler_boundary("Error fetching dashboard data"):
        user = load_user(db, current.user_id)
        progress = get_documents(db, PROGRESS, {"userId": current.user_id})
        plans = get_documents(db, PLANS, {"userId": current.user_id}, newest_first=True)
        alerts = active_alerts(db, user.get("region"))

        return {
            "user": {
                "fullName": user.get("fullName"),
                "email": user.get("email"),
                "region": user.get("region"),
            },
            "stats": dashboard_stats(user, progress, plans),
            "progress": progress,
            "plans": plans,
            "alerts": alerts,
        }


@app.post("/api/progress", response_model=ProgressMessageResponse)
def update_progress(
    payload: ProgressUpdateRequest,
    current: TokenClaims = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    with handler_boundary("Error updating progress"):
        key = {"userId": current.user_id, "courseId": payload.courseId}
        existing = db[PROGRESS].find_one(key)
        if existing:
            doc = db[PROGRESS].find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": {
                    "progress": payload.progress,
                    "completed": payload.completed,
                    "lastUpdated": now_iso(),
                }},
                return_document=ReturnDocument.AFTER,
            )
            progress_doc = serialize(doc)
        else:
            progress_doc = create_document(db, PROGRESS, {
                **key,
                "courseName": payload.courseName,
                "progress": payload.progress,
                "completed": payload.completed,
                "lastUpdated": now_iso(),
            })

        all_progress = list(db[PROGRESS].find({"userId": current.user_id}))
        db[USERS].update_one(
            {"_id": to_object_id(current.user_id)},
            {"$set": {"progress.trainingCompleted": training_progress(all_progress)}},
        )
        return {"message": "Progress updated successfully", "progress": progress_doc}


# ---------------------------
# Emergency plans
# ---------------------------

@app.get("/api/plans", response_model=List[PlanResponse])
def list_plans(current: TokenClaims = Depends(get_current_user), db: Database = Depends(get_db)):
    with handler_boundary("Error fetching plans"):
        return get_documents(db, PLANS, {"userId": current.user_id}, newest_first=True)


@app.post("/api/plans", response_model=PlanMessageResponse, status_code=201)
def create_plan(
    payload: PlanCreateRequest,
    current: TokenClaims = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    with handler_boundary("Error creating plan"):
        plan = create_document(db, PLANS, {
            "userId": current.user_id,
            **payload.model_dump(),
            "completed": False,
        })

        # plansCreated is the number of plans the user owns
        db[USERS].update_one(
            {"_id": to_object_id(current.user_id)},
            {"$set": {"progress.plansCreated": db[PLANS].count_documents({"userId": current.user_id})}},
        )
        logger.info("User %s created plan %s", current.user_id, plan["id"])
        return {"message": "Plan created successfully", "plan": plan}


@app.put("/api/plans/{plan_id}", response_model=PlanMessageResponse)
def update_plan(
    plan_id: str,
    payload: PlanUpdateRequest,
    current: TokenClaims = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    with handler_boundary("Error updating plan"):
        oid = to_object_id(plan_id)
        if oid is None:
            raise NotFound("Plan not found")

        owned = {"_id": oid, "userId": current.user_id}
        # null fields are left unchanged
        updates = payload.model_dump(exclude_unset=True, exclude_none=True)
        if updates:
            plan = db[PLANS].find_one_and_update(
                owned, {"$set": updates}, return_document=ReturnDocument.AFTER
            )
        else:
            plan = db[PLANS].find_one(owned)

        if not plan:
            raise NotFound("Plan not found")
        logger.info("User %s updated plan %s", current.user_id, plan_id)
        return {"message": "Plan updated successfully", "plan": serialize(plan)}


# ---------------------------
# Alerts
# ---------------------------

@app.get("/api/alerts", response_model=List[AlertResponse])
def list_alerts(current: TokenClaims = Depends(get_current_user), db: Database = Depends(get_db)):
    with handler_boundary("Error fetching alerts"):
        user = load_user(db, current.user_id)
        return active_alerts(db, user.get("region"))


@app.post("/api/mock-data", response_model=MessageResponse)
def create_mock_data(db: Database = Depends(get_db)):
    with handler_boundary("Error creating mock data"):
        now = datetime.now(timezone.utc)
        sample_alerts = [
            {
                "title": "Severe Thunderstorm Warning",
                "description": "Heavy thunderstorms expected in your area",
                "type": "weather",
                "severity": "high",
                "region": "north",
                "expiresAt": (now + timedelta(hours=6)).isoformat(),
                "createdAt": now.isoformat(),
            },
            {
                "title": "High Wind Advisory",
                "description": "Strong winds expected tomorrow",
                "type": "weather",
                "severity": "medium",
                "region": "north",
                "expiresAt": (now + timedelta(hours=24)).isoformat(),
                "createdAt": now.isoformat(),
            },
        ]
        db[ALERTS].insert_many(sample_alerts)
        logger.info("Seeded %d demo alerts", len(sample_alerts))
        return {"message": "Mock data created successfully"}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    logger.info("Disaster Preparedness API on port %s (database %s)", settings.port, settings.database_name)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
