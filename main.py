import os
import logging
import re
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field

import database
from auth import authenticate, ensure_admin, hash_password, issue_token, verify_password, TOKEN_COOKIE
from database import create_document, now, to_object_id, to_public
from enrollment import enroll, enrolled_student_ids, list_enrollments
from errors import AuthenticationFailed, ConfigurationError, Conflict, LMSError, ValidationFailed
from lectures import course_lectures, create_lecture, delete_course, load_course
from maintenance import run_startup_tasks
from playlist_import import import_playlist
from progress import completed_lectures, compute_progress, get_course_progress, mark_completed
from schemas import Course, Level, Profile, User
from youtube import YouTubeClient, client_from_env, resolve_playlist_id

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("lms")

app = FastAPI(title="LMS API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


@app.exception_handler(LMSError)
async def lms_error_handler(request: Request, exc: LMSError):
    body = {"success": False, "detail": exc.message}
    if not is_production() and exc.detail:
        body["error"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = {"success": False, "detail": "Server error"}
    if not is_production():
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# --- Dependencies ---

def get_db():
    if database.db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return database.db


def get_youtube() -> Optional[YouTubeClient]:
    return client_from_env()


def current_user(request: Request, db=Depends(get_db)):
    return authenticate(db, request)


def optional_user(request: Request, db=Depends(get_db)):
    try:
        return authenticate(db, request)
    except AuthenticationFailed:
        return None


def admin_user(user=Depends(current_user)):
    return ensure_admin(user)


# --- Models for requests ---

class RegisterReq(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginReq(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    profile: Optional[Profile] = None


class CreateCourse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., alias="courseTitle")
    subtitle: Optional[str] = Field(None, alias="subTitle")
    description: str
    category: str
    level: Optional[Level] = None
    playlist_id: Optional[str] = Field(None, alias="playlistId")
    is_published: bool = Field(True, alias="isPublished")


class UpdateCourse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, alias="courseTitle")
    subtitle: Optional[str] = Field(None, alias="subTitle")
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[Level] = None
    playlist_id: Optional[str] = Field(None, alias="playlistId")
    is_published: Optional[bool] = Field(None, alias="isPublished")


class PublishReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_published: Optional[bool] = Field(None, alias="isPublished")


class CreateLecture(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, alias="lectureTitle")
    description: Optional[str] = Field("", alias="lectureDescription")
    video_url: Optional[str] = Field(None, alias="videoUrl")
    sequence: Optional[int] = Field(None, ge=1)


class ImportPlaylistReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    playlist_id: Optional[str] = Field(None, alias="playlistId")
    replace_existing: bool = Field(False, alias="replaceExisting")


# --- Startup ---

@app.on_event("startup")
def on_startup():
    if database.db is None:
        logger.warning("DATABASE_URL not set, skipping startup tasks")
        return
    run_startup_tasks(database.db)


# --- Health ---

@app.get("/")
async def root():
    return {"name": "LMS API", "status": "ok"}


@app.get("/test")
def test_database():
    resp = {
        "backend": "ok",
        "database": "not available" if database.db is None else "connected",
        "collections": [],
    }
    if database.db is not None:
        resp["collections"] = database.db.list_collection_names()
    return resp


# --- Users ---

@app.post("/api/v1/users/register", status_code=201)
def register(payload: RegisterReq, db=Depends(get_db)):
    email = payload.email.strip().lower()
    if db["user"].find_one({"email": email}):
        raise Conflict("User already exists")
    user_id = create_document(db, "user", User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
    ).model_dump())
    return {"success": True, "message": "User created successfully",
            "user": {"id": user_id, "name": payload.name.strip(), "email": email}}


@app.post("/api/v1/users/login")
def login(payload: LoginReq, response: Response, db=Depends(get_db)):
    user = db["user"].find_one({"email": payload.email.strip().lower()})
    if not user or not verify_password(payload.password, user.get("password_hash")):
        raise ValidationFailed("Incorrect email or password")
    token = issue_token(user)
    response.set_cookie(
        TOKEN_COOKIE, token,
        httponly=True, samesite="strict", secure=is_production(),
        max_age=int(os.getenv("JWT_EXPIRE_DAYS", "30")) * 24 * 60 * 60,
    )
    return {
        "success": True,
        "message": f"Welcome back {user.get('name')}",
        "token": token,
        "user": {"id": str(user["_id"]), "name": user.get("name"), "email": user.get("email"), "role": user.get("role")},
    }


@app.post("/api/v1/users/logout")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return {"success": True, "message": "Logged out successfully"}


@app.get("/api/v1/users/profile")
def get_profile(user=Depends(current_user)):
    return {"success": True, "user": to_public(user)}


@app.put("/api/v1/users/profile")
def update_profile(payload: ProfileUpdate, user=Depends(current_user), db=Depends(get_db)):
    changes = {}
    if payload.name is not None:
        if not payload.name.strip():
            raise ValidationFailed("Name cannot be empty")
        changes["name"] = payload.name.strip()
    if payload.photo_url is not None:
        changes["photo_url"] = payload.photo_url.strip()
    if payload.profile is not None:
        prof = payload.profile.model_dump()
        prof["is_profile_complete"] = bool(prof["bio"] and prof["areas_of_interest"] and prof["learning_goals"])
        changes["profile"] = prof
    if changes:
        changes["updated_at"] = now()
        db["user"].update_one({"_id": user["_id"]}, {"$set": changes})
    return {"success": True, "message": "Profile updated successfully",
            "user": to_public(db["user"].find_one({"_id": user["_id"]}))}


@app.post("/api/v1/users/enroll/{course_id}")
def enroll_in_course(course_id: str, user=Depends(current_user), db=Depends(get_db)):
    record = enroll(db, str(user["_id"]), course_id)
    return {"success": True, "message": f"Successfully enrolled in {record['course_title']}", "enrollment": record}


@app.get("/api/v1/users/enrolled-courses")
def enrolled_courses(user=Depends(current_user), db=Depends(get_db)):
    user_id = str(user["_id"])
    items = []
    for e in list_enrollments(db, user_id):
        oid = to_object_id(e["course_id"])
        course = db["course"].find_one({"_id": oid}) if oid else None
        if not course:
            continue
        progress = compute_progress(db, user_id, course)
        items.append({
            "course": {
                "id": e["course_id"],
                "title": course.get("title"),
                "category": course.get("category"),
                "level": course.get("level"),
                "lecture_count": len(course.get("lectures", [])),
            },
            "enrolled_at": e.get("enrolled_at"),
            "last_accessed_at": (e.get("progress") or {}).get("last_accessed_at"),
            **progress.to_dict(),
        })
    return {"success": True, "enrolled_courses": items}


@app.post("/api/v1/users/progress/{course_id}/{lecture_id}/complete")
def complete_lecture(course_id: str, lecture_id: str, user=Depends(current_user), db=Depends(get_db)):
    result = mark_completed(db, str(user["_id"]), course_id, lecture_id)
    return {"success": True, "message": "Lecture marked as completed", "progress": result.to_dict()}


@app.get("/api/v1/users/progress/{course_id}")
def course_progress(course_id: str, user=Depends(current_user), db=Depends(get_db)):
    user_id = str(user["_id"])
    result = get_course_progress(db, user_id, course_id)
    return {
        "success": True,
        "course_id": course_id,
        "progress": result.to_dict(),
        "completed_lectures": completed_lectures(db, user_id, course_id),
    }


# --- Courses ---

SORTS = {
    "newest": [("created_at", -1)],
    "oldest": [("created_at", 1)],
    "title": [("title", 1)],
}


def course_summary(db, course) -> dict:
    d = to_public(course)
    d["lecture_count"] = len(course.get("lectures", []))
    d["enrolled_count"] = len(enrolled_student_ids(db, str(course["_id"])))
    return d


@app.post("/api/v1/courses", status_code=201)
def create_course(payload: CreateCourse, admin=Depends(admin_user), db=Depends(get_db),
                  yt: Optional[YouTubeClient] = Depends(get_youtube)):
    playlist_id = None
    if payload.playlist_id:
        playlist_id = resolve_playlist_id(payload.playlist_id)
        if yt is None:
            raise ConfigurationError("YouTube API key not configured")
    doc = Course(
        title=payload.title,
        subtitle=payload.subtitle,
        description=payload.description,
        category=payload.category,
        level=payload.level,
        creator_id=str(admin["_id"]),
        is_published=payload.is_published,
    ).model_dump()
    course_id = create_document(db, "course", doc)
    logger.info("Course %s created by %s", course_id, admin.get("email"))

    imported = None
    if playlist_id:
        imported = import_playlist(db, yt, course_id, playlist_id).to_dict()
    course = db["course"].find_one({"_id": to_object_id(course_id)})
    return {"success": True, "message": "Course created successfully",
            "course": course_summary(db, course), "import": imported}


@app.get("/api/v1/courses")
def list_courses(
    search: Optional[str] = None,
    category: Optional[str] = None,
    level: Optional[str] = None,
    sort_by: str = "newest",
    page: int = 1,
    limit: int = 12,
    include_unpublished: bool = False,
    user=Depends(optional_user),
    db=Depends(get_db),
):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    filt = {}
    if search:
        filt["$or"] = [
            {"title": {"$regex": re.escape(search), "$options": "i"}},
            {"description": {"$regex": re.escape(search), "$options": "i"}},
        ]
    if category and category != "all":
        filt["category"] = category
    if level and level != "all":
        filt["level"] = level
    if not (include_unpublished and user and user.get("role") == "admin"):
        filt["is_published"] = True

    courses = list(
        db["course"].find(filt).sort(SORTS.get(sort_by, SORTS["newest"])).skip((page - 1) * limit).limit(limit)
    )
    total = db["course"].count_documents(filt)
    total_pages = (total + limit - 1) // limit
    published = list(db["course"].find({"is_published": True}, {"category": 1, "level": 1}))
    return {
        "success": True,
        "courses": [course_summary(db, c) for c in courses],
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_courses": total,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
        "filters": {
            "categories": sorted({c["category"] for c in published if c.get("category")}),
            "levels": sorted({c["level"] for c in published if c.get("level")}),
        },
    }


@app.get("/api/v1/courses/analytics")
def analytics(admin=Depends(admin_user), db=Depends(get_db)):
    courses = list(db["course"].find({}))
    stats = sorted((course_summary(db, c) for c in courses), key=lambda c: c["enrolled_count"], reverse=True)
    by_category = {}
    for c in courses:
        by_category[c.get("category")] = by_category.get(c.get("category"), 0) + 1
    total_lectures = db["lecture"].count_documents({})
    return {
        "success": True,
        "analytics": {
            "overview": {
                "total_courses": len(courses),
                "total_lectures": total_lectures,
                "total_enrollments": db["enrollment"].count_documents({}),
                "avg_lectures_per_course": round(total_lectures / len(courses), 1) if courses else 0,
            },
            "popular_courses": stats[:5],
            "courses_by_category": [
                {"category": k, "count": v} for k, v in sorted(by_category.items(), key=lambda kv: -kv[1])
            ],
        },
    }


@app.get("/api/v1/courses/{course_id}")
def get_course(course_id: str, db=Depends(get_db)):
    course = load_course(db, course_id)
    data = course_summary(db, course)
    data["lectures"] = [
        {"id": str(lec["_id"]), "title": lec.get("title"), "video_url": lec.get("video_url"), "sequence": lec.get("sequence")}
        for lec in course_lectures(db, course)
    ]
    return {"success": True, "course": data}


@app.put("/api/v1/courses/{course_id}")
def update_course(course_id: str, payload: UpdateCourse, admin=Depends(admin_user), db=Depends(get_db)):
    course = load_course(db, course_id)
    changes = payload.model_dump(exclude_none=True)
    if "playlist_id" in changes:
        changes["playlist_id"] = resolve_playlist_id(changes["playlist_id"])
    if changes:
        changes["updated_at"] = now()
        db["course"].update_one({"_id": course["_id"]}, {"$set": changes})
    logger.info("Course %s updated by %s", course_id, admin.get("email"))
    return {"success": True, "message": "Course updated successfully",
            "course": course_summary(db, db["course"].find_one({"_id": course["_id"]}))}


@app.patch("/api/v1/courses/{course_id}/publish")
def toggle_publish(course_id: str, payload: Optional[PublishReq] = None, admin=Depends(admin_user), db=Depends(get_db)):
    course = load_course(db, course_id)
    wanted = payload.is_published if payload and payload.is_published is not None else not course.get("is_published", False)
    db["course"].update_one({"_id": course["_id"]}, {"$set": {"is_published": wanted, "updated_at": now()}})
    state = "published" if wanted else "unpublished"
    logger.info("Course %s %s by %s", course_id, state, admin.get("email"))
    return {"success": True, "message": f"Course {state} successfully",
            "course": {"id": course_id, "title": course.get("title"), "is_published": wanted}}


@app.delete("/api/v1/courses/{course_id}")
def remove_course(course_id: str, admin=Depends(admin_user), db=Depends(get_db)):
    logger.info("Admin %s is deleting course %s", admin.get("email"), course_id)
    deleted = delete_course(db, course_id)
    return {"success": True, "message": "Course and associated lectures deleted successfully", "deleted_course": deleted}


# --- Lectures ---

@app.post("/api/v1/courses/{course_id}/lectures", status_code=201)
def add_lecture(course_id: str, payload: CreateLecture, admin=Depends(admin_user), db=Depends(get_db),
                yt: Optional[YouTubeClient] = Depends(get_youtube)):
    lecture = create_lecture(
        db, yt, course_id,
        title=payload.title,
        video_url=payload.video_url,
        description=payload.description or "",
        sequence=payload.sequence,
    )
    return {"success": True, "message": "Lecture created successfully", "lecture": to_public(lecture)}


@app.get("/api/v1/courses/{course_id}/lectures")
def list_lectures(course_id: str, db=Depends(get_db)):
    course = load_course(db, course_id)
    return {
        "success": True,
        "lectures": [to_public(lec) for lec in course_lectures(db, course)],
        "course": {
            "id": course_id,
            "title": course.get("title"),
            "description": course.get("description"),
            "category": course.get("category"),
            "level": course.get("level"),
        },
    }


@app.post("/api/v1/courses/{course_id}/lectures/import-playlist", status_code=201)
def import_playlist_lectures(course_id: str, payload: ImportPlaylistReq, admin=Depends(admin_user),
                             db=Depends(get_db), yt: Optional[YouTubeClient] = Depends(get_youtube)):
    if not payload.playlist_id:
        raise ValidationFailed("Playlist ID is required")
    result = import_playlist(db, yt, course_id, payload.playlist_id, payload.replace_existing)
    return {"success": True, "message": result.message, "data": result.to_dict()}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
