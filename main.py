from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlencode

import logging
import sqlite3

from fastapi import Depends, FastAPI, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

# Local imports
import databases_sql
import ledger
from auth import Identity, current_identity, require_admin
from availability import ANY_INSTRUCTOR, find_available
from errors import BookingError, NotFoundError, TransientError
from instructor_cache import InstructorDirectory
from models import (
    AdminBookRequest, BookingConfirmation, BookingOut, BookRequest, ClassIn, ClassOut,
    ClassUpdate, InstructorIn, InstructorOut, Overview, ProfileIn, ProfileOut,
    ScheduleOut, StatusUpdate,
)
from schedule import build_schedule
from seed_data import seed_studio
from settings import settings
from utils import class_label, week_bounds

# ---------- Config ----------
TEMPLATES_DIR = Path(settings.templates_dir)
if not TEMPLATES_DIR.is_absolute():
    TEMPLATES_DIR = Path(__file__).parent / TEMPLATES_DIR
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("booking_api")

POLICY_MESSAGE = "You must agree to all terms of the cancellation policy to book."


# ---------- App Lifecycle ----------
@asynccontextmanager
async def lifespan(app: FastAPI):
    databases_sql.init_db()
    if settings.seed_on_startup:
        seed_studio()
    app.state.instructors = InstructorDirectory()
    logger.info("Database initialized at %s", databases_sql.DB_PATH)
    yield
    logger.info("Application shutting down.")

app = FastAPI(title="Studio Class Booking API", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(sqlite3.Error)
async def store_error_handler(request: Request, exc: sqlite3.Error):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    error = TransientError(databases_sql.UNAVAILABLE_MESSAGE)
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


# ---------- Helpers ----------
def _directory(request: Request) -> InstructorDirectory:
    return request.app.state.instructors


def _class_out(cls: dict, directory: InstructorDirectory) -> ClassOut:
    name = directory.name_for(cls["instructor_id"])
    return ClassOut(
        **cls,
        instructor_name=name,
        spots_left=cls["capacity"] - cls["booked_slots"],
        label=class_label(cls, name),
    )


def _booking_out(booking: dict, directory: InstructorDirectory) -> BookingOut:
    return BookingOut(**booking, instructor_name=directory.name_for(booking["instructor_id"]))


def _current_week_schedule():
    week_start, week_end = week_bounds()
    classes = databases_sql.list_active_classes_between(
        week_start.date().isoformat(), week_end.date().isoformat()
    )
    return week_start, week_end, build_schedule(classes)


# ---------- Public API ----------
@app.get("/instructors", response_model=List[InstructorOut])
def list_instructors_api():
    return databases_sql.list_instructors(active_only=True)


@app.get("/classes/available", response_model=List[ClassOut])
def available_classes_api(request: Request, instructor: str = Query(ANY_INSTRUCTOR)):
    week_start, week_end = week_bounds()
    directory = _directory(request)
    return [_class_out(c, directory) for c in find_available(week_start, week_end, instructor)]


@app.get("/classes/{class_id}", response_model=ClassOut)
def get_class_api(request: Request, class_id: str):
    cls = databases_sql.get_class(class_id)
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found")
    return _class_out(cls, _directory(request))


@app.get("/schedule", response_model=ScheduleOut)
def schedule_api(request: Request):
    week_start, week_end, schedule = _current_week_schedule()
    directory = _directory(request)
    return ScheduleOut(
        week_start=week_start.date(),
        week_end=week_end.date(),
        times=schedule.times,
        days={
            day: {time: _class_out(cls, directory) for time, cls in slots.items()}
            for day, slots in schedule.days.items()
        },
    )


@app.post("/bookings", response_model=BookingConfirmation, status_code=201)
def book_class_api(req: BookRequest):
    booking_id = ledger.create_booking(req.class_id, req.model_dump(exclude={"class_id"}))
    return BookingConfirmation(
        booking_id=booking_id,
        message="Booking confirmed! Check your email for details.",
    )


# ---------- Profiles ----------
@app.put("/profiles/me", response_model=ProfileOut)
def save_profile_api(data: ProfileIn, identity: Identity = Depends(current_identity)):
    return databases_sql.upsert_profile(
        identity.uid, data.first_name, data.last_name, data.email, data.phone
    )


@app.get("/profiles/me", response_model=ProfileOut)
def get_profile_api(identity: Identity = Depends(current_identity)):
    profile = databases_sql.get_profile(identity.uid)
    if not profile:
        raise HTTPException(status_code=404, detail="No profile found for this account")
    return profile


@app.get("/profiles/me/bookings", response_model=List[BookingOut])
def booking_history_api(request: Request, identity: Identity = Depends(current_identity)):
    profile = databases_sql.get_profile(identity.uid)
    email = (profile or {}).get("email") or identity.email
    if not email:
        return []
    directory = _directory(request)
    return [_booking_out(b, directory) for b in databases_sql.list_bookings_by_email(email)]


# ---------- Admin API ----------
@app.get("/admin/overview", response_model=Overview)
def overview_api(_: Identity = Depends(require_admin)):
    return databases_sql.overview_counts()


@app.get("/admin/classes", response_model=List[ClassOut])
def admin_list_classes(request: Request, _: Identity = Depends(require_admin)):
    directory = _directory(request)
    return [_class_out(c, directory) for c in databases_sql.list_classes()]


@app.post("/admin/classes", response_model=ClassOut, status_code=201)
def admin_create_class(request: Request, data: ClassIn, admin: Identity = Depends(require_admin)):
    class_id = databases_sql.insert_class(
        data.title, data.instructor_id, data.date, data.start_time,
        data.end_time, data.capacity, data.is_active,
    )
    logger.info("Class %s added by %s", class_id, admin.uid)
    return _class_out(databases_sql.get_class(class_id), _directory(request))


@app.put("/admin/classes/{class_id}", response_model=ClassOut)
def admin_update_class(request: Request, class_id: str, data: ClassUpdate, _: Identity = Depends(require_admin)):
    updated = databases_sql.update_class(class_id, data.model_dump(exclude_unset=True, exclude_none=True))
    return _class_out(updated, _directory(request))


@app.delete("/admin/classes/{class_id}", status_code=204)
def admin_delete_class(class_id: str, _: Identity = Depends(require_admin)):
    if not databases_sql.delete_class(class_id):
        raise HTTPException(status_code=404, detail="Class not found")


@app.get("/admin/instructors", response_model=List[InstructorOut])
def admin_list_instructors(_: Identity = Depends(require_admin)):
    return databases_sql.list_instructors()


@app.post("/admin/instructors", response_model=InstructorOut, status_code=201)
def admin_create_instructor(request: Request, data: InstructorIn, _: Identity = Depends(require_admin)):
    instructor_id = databases_sql.insert_instructor(data.name, data.bio, data.is_active)
    _directory(request).invalidate()
    return databases_sql.get_instructor(instructor_id)


@app.put("/admin/instructors/{instructor_id}", response_model=InstructorOut)
def admin_update_instructor(request: Request, instructor_id: str, data: InstructorIn, _: Identity = Depends(require_admin)):
    updated = databases_sql.update_instructor(instructor_id, data.model_dump())
    _directory(request).invalidate()
    return updated


@app.delete("/admin/instructors/{instructor_id}", status_code=204)
def admin_delete_instructor(request: Request, instructor_id: str, _: Identity = Depends(require_admin)):
    if not databases_sql.delete_instructor(instructor_id):
        raise HTTPException(status_code=404, detail="Instructor not found")
    _directory(request).invalidate()


@app.get("/admin/bookings", response_model=List[BookingOut])
def admin_list_bookings(request: Request, _: Identity = Depends(require_admin)):
    directory = _directory(request)
    return [_booking_out(b, directory) for b in databases_sql.list_bookings()]


@app.post("/admin/bookings", response_model=BookingOut, status_code=201)
def admin_create_booking(request: Request, req: AdminBookRequest, _: Identity = Depends(require_admin)):
    booking_id = ledger.create_booking(
        req.class_id, req.model_dump(exclude={"class_id", "status"}), initial_status=req.status
    )
    return _booking_out(databases_sql.get_booking(booking_id), _directory(request))


@app.patch("/admin/bookings/{booking_id}/status", response_model=BookingOut)
def admin_update_booking_status(request: Request, booking_id: str, data: StatusUpdate, _: Identity = Depends(require_admin)):
    ledger.transition_status(booking_id, data.status, data.class_id)
    booking = databases_sql.get_booking(booking_id)
    if booking is None:
        raise NotFoundError("Booking not found.")
    return _booking_out(booking, _directory(request))


@app.delete("/admin/bookings/{booking_id}", status_code=204)
def admin_delete_booking(booking_id: str, class_id: Optional[str] = Query(None), _: Identity = Depends(require_admin)):
    ledger.delete_booking(booking_id, class_id)


# ---------- HTML Frontend ----------
@app.get("/", response_class=HTMLResponse)
def home(
    request: Request,
    instructor: str = ANY_INSTRUCTOR,
    class_id: Optional[str] = None,
    message: Optional[str] = None,
    status: Optional[str] = None,
):
    directory = _directory(request)
    week_start, week_end, schedule = _current_week_schedule()

    try:
        available = [_class_out(c, directory) for c in find_available(week_start, week_end, instructor)]
    except BookingError as e:
        available, message, status = [], e.message, "error"

    form_locked = False
    if class_id:
        chosen = databases_sql.get_class(class_id)
        if chosen is None:
            message, status, form_locked = "Class not found.", "error", True
        elif chosen["booked_slots"] >= chosen["capacity"]:
            message, status, form_locked = "This class is fully booked. Please select another.", "error", True
        if form_locked:
            class_id = None

    return templates.TemplateResponse(
        request,
        "classes.html",
        {
            "schedule": schedule,
            "instructors": databases_sql.list_instructors(active_only=True),
            "instructor_names": directory.names(),
            "available": available,
            "selected_instructor": instructor,
            "selected_class": class_id,
            "form_locked": form_locked,
            "week_start": week_start,
            "week_end": week_end,
            "message": message,
            "status": status,
        },
    )


@app.post("/book-form")
def book_spot_form(
    class_id: str = Form(""),
    first_name: str = Form(""),
    last_name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    notes: str = Form(""),
    agree_policy: bool = Form(False),
):
    def redirect(message: str, status: str):
        return RedirectResponse(url="/?" + urlencode({"message": message, "status": status}), status_code=303)

    if not agree_policy:
        return redirect(POLICY_MESSAGE, "error")
    try:
        req = BookRequest(
            class_id=class_id, first_name=first_name, last_name=last_name,
            email=email, phone=phone, notes=notes or None,
        )
    except ValidationError:
        return redirect("Please fill in all required fields and select a class.", "error")
    try:
        ledger.create_booking(req.class_id, req.model_dump(exclude={"class_id"}))
    except BookingError as e:
        return redirect(f"Booking failed: {e.message}", "error")
    return redirect("Booking confirmed! Check your email for details.", "success")


# ---------- Run ----------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
