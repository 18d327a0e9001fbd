import logging
import uvicorn
from typing import List
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schemas import BookCreate, BookOut, BookUpdate, BookPatch
from schemas import MovieCreate, MovieOut, MovieUpdate, MoviePatch
from crud import add_book, add_movie, list_items, list_available_items, search_items, update_item, patch_item, master_list
from schemas import MembershipCreate, MembershipOut, MembershipUpdate
from crud import add_membership, get_membership, get_memberships, get_active_memberships, extend_membership, cancel_membership
from schemas import IssueOut, OverdueIssueOut
from circulation import list_active_issues, list_overdue_issues
from config import CORS_ORIGINS, DEFAULT_ADMIN_PASSWORD, DEFAULT_ADMIN_USER_ID, LOG_LEVEL
from database import get_db, engine, Base, SessionLocal
from exceptions import LibraryError
from identifiers import ensure_sequences
from models import ItemType
import models  # ensure models are imported so tables are registered
from auth import router as auth_router
from admin import router as admin_router
from transactions import router as transactions_router
import auth_utils


logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("library")

app = FastAPI(title="Library Back Office")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    return JSONResponse(status_code=exc.status_code, content={"msg": exc.msg})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"msg": exc.detail}, headers=exc.headers)


def _first_error_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
    message = error.get("msg", "Invalid request")
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # malformed requests are client errors like any other rejected operation
    return JSONResponse(status_code=400, content={"msg": _first_error_message(exc)})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"msg": "Server error"})


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(transactions_router)


def init_db():
    """Create tables, seed identifier sequences and make sure an admin account exists."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_sequences(db)
        admin_user = db.query(models.User).filter(models.User.user_id == DEFAULT_ADMIN_USER_ID).first()
        if not admin_user:
            db.add(models.User(
                user_id=DEFAULT_ADMIN_USER_ID,
                name="Admin User",
                hashed_password=auth_utils.get_password_hash(DEFAULT_ADMIN_PASSWORD),
                role="admin",
                is_admin=True,
            ))
            db.commit()
            logger.info("Created default admin user: %s", DEFAULT_ADMIN_USER_ID)
    finally:
        db.close()


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/health")
def health(db: Session = Depends(get_db)):
    """Basic health check endpoint. Returns DB connectivity and basic counts."""
    try:
        db.execute(text("SELECT 1"))
        return {
            "status": "ok",
            "database": "connected",
            "total_books": db.query(models.Book).count(),
            "total_movies": db.query(models.Movie).count(),
            "total_memberships": db.query(models.Membership).count(),
        }
    except SQLAlchemyError as e:
        logger.warning("Health check failed: %s", e)
        return {"status": "error", "database": "disconnected", "detail": str(e)}


# Books endpoints
@app.post("/api/books", response_model=BookOut)
def create_book(book: BookCreate, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    try:
        return add_book(book, db)
    except ValueError as e:
        logger.warning("Error creating book: %s", e)
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/books", response_model=List[BookOut])
def list_books(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return list_items(db, ItemType.BOOK)


@app.get("/api/books/available", response_model=List[BookOut])
def available_books(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return list_available_items(db, ItemType.BOOK)


@app.get("/api/books/search", response_model=List[BookOut])
def search_books(query: str = Query(..., min_length=1), db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return search_items(db, ItemType.BOOK, query)


@app.put("/api/books", response_model=BookOut)
def modify_book(book: BookUpdate, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    updated = update_item(ItemType.BOOK, book, db)
    if not updated:
        raise HTTPException(status_code=404, detail="Book not found")
    return updated


@app.put("/api/books/{serial_no:path}", response_model=BookOut)
def modify_book_by_serial(serial_no: str, book: BookPatch, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    updated = patch_item(ItemType.BOOK, serial_no, book, db)
    if not updated:
        raise HTTPException(status_code=404, detail="Book not found")
    return updated


# Movies endpoints
@app.post("/api/movies", response_model=MovieOut)
def create_movie(movie: MovieCreate, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    try:
        return add_movie(movie, db)
    except ValueError as e:
        logger.warning("Error creating movie: %s", e)
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/movies", response_model=List[MovieOut])
def list_movies(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return list_items(db, ItemType.MOVIE)


@app.get("/api/movies/available", response_model=List[MovieOut])
def available_movies(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return list_available_items(db, ItemType.MOVIE)


@app.get("/api/movies/search", response_model=List[MovieOut])
def search_movies(query: str = Query(..., min_length=1), db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return search_items(db, ItemType.MOVIE, query)


@app.put("/api/movies", response_model=MovieOut)
def modify_movie(movie: MovieUpdate, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    updated = update_item(ItemType.MOVIE, movie, db)
    if not updated:
        raise HTTPException(status_code=404, detail="Movie not found")
    return updated


@app.put("/api/movies/{serial_no:path}", response_model=MovieOut)
def modify_movie_by_serial(serial_no: str, movie: MoviePatch, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    updated = patch_item(ItemType.MOVIE, serial_no, movie, db)
    if not updated:
        raise HTTPException(status_code=404, detail="Movie not found")
    return updated


# Membership endpoints
@app.post("/api/membership", response_model=MembershipOut)
def create_membership(member: MembershipCreate, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    try:
        return add_membership(member, db)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/membership", response_model=List[MembershipOut])
def list_memberships(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return get_memberships(db)


@app.get("/api/membership/active", response_model=List[MembershipOut])
def list_active_memberships(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return get_active_memberships(db)


@app.get("/api/membership/{membership_id}", response_model=MembershipOut)
def retrieve_membership(membership_id: str, db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    m = get_membership(membership_id, db)
    if not m:
        raise HTTPException(status_code=404, detail="Membership not found")
    return m


@app.put("/api/membership/{membership_id}", response_model=MembershipOut)
def modify_membership(membership_id: str, payload: MembershipUpdate, db: Session = Depends(get_db), _admin: models.User = Depends(auth_utils.get_admin_user)):
    if payload.action == "extend":
        updated = extend_membership(membership_id, payload.extension_type, db)
    else:
        updated = cancel_membership(membership_id, db)
    if not updated:
        raise HTTPException(status_code=404, detail="Membership not found")
    return updated


# Reports
@app.get("/api/reports/master-books", response_model=List[BookOut])
def report_master_books(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return master_list(db, ItemType.BOOK)


@app.get("/api/reports/master-movies", response_model=List[MovieOut])
def report_master_movies(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return master_list(db, ItemType.MOVIE)


@app.get("/api/reports/master-memberships", response_model=List[MembershipOut])
def report_master_memberships(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return get_memberships(db)


@app.get("/api/reports/active-issues", response_model=List[IssueOut])
def report_active_issues(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    return list_active_issues(db)


@app.get("/api/reports/overdue-returns", response_model=List[OverdueIssueOut])
def report_overdue_returns(db: Session = Depends(get_db), _user: models.User = Depends(auth_utils.get_current_active_user)):
    """Open loans past due, each with the fine it would carry if returned now."""
    return [
        {**IssueOut.model_validate(issue).model_dump(), **projection}
        for issue, projection in list_overdue_issues(db)
    ]

# Add this to run the application directly
if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=9000,
        reload=True
    )
