"""Local store for users, meal ratings and weekly menus.

The store wraps one SQLAlchemy session. It is constructed by the application factory
and handed to whoever needs it; nothing here keeps module-level connection state.
"""

import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, Sequence

import bcrypt
from sqlalchemy import Float, cast, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import (
    InvalidMenuError,
    InvalidPasswordError,
    InvalidRatingError,
    InvalidRoleError,
    UserAlreadyExistsError,
)
from models import RATING_MAX, RATING_MIN, ROLES, FoodRating, MenuItem, User, db

logger = logging.getLogger(__name__)

MENU_SIZE = 5
STATS_WINDOW_DAYS = 7
NO_RATINGS_NAME = "No ratings yet"

# bcrypt ignores everything past 72 bytes, longer passwords are refused
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True)
class RatingStreak:
    current_streak: int
    last_rating_date: Optional[datetime]
    total_ratings: int


@dataclass(frozen=True)
class MealScore:
    name: str
    rating: float


@dataclass(frozen=True)
class WeeklyStats:
    best_meal: MealScore
    worst_meal: MealScore

    @property
    def has_ratings(self) -> bool:
        return self.best_meal.name != NO_RATINGS_NAME


def next_week_start(today: date) -> date:
    """Return the upcoming Monday, which is today itself on a Monday."""
    return today + timedelta(days=(7 - today.weekday()) % 7)


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")


def _password_too_long(password: str) -> bool:
    return len(_password_bytes(password)) > BCRYPT_MAX_BYTES


def _logs_read_errors(method):
    """Log and roll back engine errors raised while reading, then re-raise."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Failed to read in %s", method.__name__)
            raise

    return wrapper


def _check_rating(field: str, value) -> int:
    # bool is an int subclass but True is not a score
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRatingError(f"{field} rating must be a whole number, got {value!r}")
    if not RATING_MIN <= value <= RATING_MAX:
        raise InvalidRatingError(
            f"{field} rating must be between {RATING_MIN} and {RATING_MAX}, got {value}"
        )
    return value


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class LocalStore:
    """Persistence for the dining feedback app."""

    def __init__(
        self,
        session,
        clock: Callable[[], datetime] = datetime.now,
        bcrypt_rounds: int = 12,
    ):
        """Initialize LocalStore.

        Args:
            session: SQLAlchemy session (or Flask-SQLAlchemy scoped session).
            clock: Returns the current local time. Day-based queries use its date.
            bcrypt_rounds: Cost factor for password hashing.
        """
        self.session = session
        self.clock = clock
        self.bcrypt_rounds = bcrypt_rounds
        self._dummy_hash = None

    def today(self) -> date:
        return self.clock().date()

    @contextmanager
    def _transaction(self, action: str):
        """Commit the work done in the block, or roll all of it back."""
        try:
            yield
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Failed to %s", action)
            raise

    # --- Schema ---

    def initialize(self) -> None:
        """Create any missing tables. Safe to call repeatedly."""
        db.metadata.create_all(bind=self.session.get_bind())
        logger.info("Database initialized")

    def reset(self) -> None:
        """Drop every table and create them again, empty."""
        self.session.close()
        engine = self.session.get_bind()
        db.metadata.drop_all(bind=engine)
        db.metadata.create_all(bind=engine)
        logger.warning("Database reset, all users, ratings and menus removed")

    # --- Users ---

    def hash_password(self, password: str) -> str:
        if _password_too_long(password):
            raise InvalidPasswordError(
                f"Password must be at most {BCRYPT_MAX_BYTES} bytes long"
            )
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        if _password_too_long(password):
            return False
        try:
            return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
        except ValueError:
            # stored value is not a bcrypt hash
            logger.error("Stored password hash is malformed")
            return False

    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: str,
        student_id: Optional[str] = None,
    ) -> int:
        """Create a user and return its id.

        Raises:
            InvalidRoleError: If role is not admin or student.
            InvalidPasswordError: If the password is longer than bcrypt can hash.
            UserAlreadyExistsError: If the email is already registered.
        """
        if role not in ROLES:
            raise InvalidRoleError(f"Role must be one of {', '.join(ROLES)}, got {role!r}")

        user = User(
            name=name,
            email=email,
            password_hash=self.hash_password(password),
            role=role,
            student_id=student_id,
        )
        try:
            with self._transaction(f"create user {email}"):
                self.session.add(user)
        except IntegrityError as e:
            if "unique" in str(e.orig).lower():
                raise UserAlreadyExistsError(email) from e
            raise

        logger.info("Created %s user %s (id=%s)", role, email, user.id)
        return user.id

    @_logs_read_errors
    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    @_logs_read_errors
    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.session.query(User).filter_by(email=email).first()

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.hash_password("not-a-real-password")
        return self._dummy_hash

    def validate_credentials(self, email: str, password: str) -> Optional[User]:
        """Return the user whose email and password both match, else None."""
        user = self.get_user_by_email(email)
        if user is None:
            # same bcrypt cost as a real check, so timing does not reveal the email
            self.verify_password(password, self._get_dummy_hash())
            return None
        if not self.verify_password(password, user.password_hash):
            return None
        return user

    # --- Ratings ---

    def add_rating(
        self,
        user_id: int,
        taste: int,
        portion: int,
        variety: int,
        overall: int,
        meal_name: Optional[str] = None,
        comment: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Store one meal rating and return its id.

        Raises:
            InvalidRatingError: If any dimension is outside 1-5.
        """
        rating = FoodRating(
            user_id=user_id,
            taste_rating=_check_rating("Taste", taste),
            portion_rating=_check_rating("Portion", portion),
            variety_rating=_check_rating("Variety", variety),
            overall_rating=_check_rating("Overall", overall),
            meal_name=_clean_text(meal_name),
            comment=_clean_text(comment),
            created_at=created_at or self.clock(),
        )
        with self._transaction(f"add rating for user {user_id}"):
            self.session.add(rating)

        logger.info("User %s rated %s (id=%s)", user_id, rating.meal_name or "a meal", rating.id)
        return rating.id

    @_logs_read_errors
    def get_rating_streak(self, user_id: int) -> RatingStreak:
        """Count consecutive days with at least one rating.

        The run has to end today or yesterday; an older last rating means the
        streak has already been broken and is 0.
        """
        timestamps = [
            created_at
            for (created_at,) in self.session.query(FoodRating.created_at)
            .filter(FoodRating.user_id == user_id)
            .all()
        ]
        if not timestamps:
            return RatingStreak(current_streak=0, last_rating_date=None, total_ratings=0)

        rated_days = {ts.date() for ts in timestamps}
        day = self.today()
        if day not in rated_days:
            day -= timedelta(days=1)

        streak = 0
        while day in rated_days:
            streak += 1
            day -= timedelta(days=1)

        return RatingStreak(
            current_streak=streak,
            last_rating_date=max(timestamps),
            total_ratings=len(timestamps),
        )

    @_logs_read_errors
    def has_rated_today(self, user_id: int) -> bool:
        start = datetime.combine(self.today(), time.min)
        end = start + timedelta(days=1)
        count = (
            self.session.query(func.count(FoodRating.id))
            .filter(
                FoodRating.user_id == user_id,
                FoodRating.created_at >= start,
                FoodRating.created_at < end,
            )
            .scalar()
        )
        return count > 0

    @_logs_read_errors
    def get_weekly_stats(self) -> WeeklyStats:
        """Best and worst meal of the last seven days by average score.

        A rating's score is the mean of its four dimensions; a meal's score is the
        mean of its ratings' scores. Ratings without a meal name are left out.
        """
        since = datetime.combine(self.today() - timedelta(days=STATS_WINDOW_DAYS), time.min)
        score = (
            FoodRating.taste_rating
            + FoodRating.portion_rating
            + FoodRating.variety_rating
            + FoodRating.overall_rating
        ) / 4.0
        rows = (
            self.session.query(FoodRating.meal_name, cast(func.avg(score), Float))
            .filter(FoodRating.created_at >= since, FoodRating.meal_name.is_not(None))
            .group_by(FoodRating.meal_name)
            .all()
        )
        if not rows:
            empty = MealScore(NO_RATINGS_NAME, 0.0)
            return WeeklyStats(best_meal=empty, worst_meal=empty)

        scores = [MealScore(name, float(avg)) for name, avg in rows]
        best = min(scores, key=lambda s: (-s.rating, s.name))
        worst = min(scores, key=lambda s: (s.rating, s.name))
        return WeeklyStats(best_meal=best, worst_meal=worst)

    @_logs_read_errors
    def get_meal_feedback(self, meal_name: str, limit: Optional[int] = None) -> List[FoodRating]:
        """Ratings recorded for one meal, newest first."""
        query = (
            self.session.query(FoodRating)
            .filter(FoodRating.meal_name == meal_name)
            .order_by(FoodRating.created_at.desc(), FoodRating.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    # --- Menus ---

    def add_week_menu(self, names: Sequence[str]) -> List[MenuItem]:
        """Publish the five meals for the week starting next Monday.

        All five rows are written in one transaction.

        Raises:
            InvalidMenuError: Unless exactly five non-blank names are given.
        """
        if isinstance(names, str):
            raise InvalidMenuError(f"Please add all {MENU_SIZE} menu items, not a single name")
        cleaned = [_clean_text(name) for name in names]
        if len(cleaned) != MENU_SIZE or not all(cleaned):
            raise InvalidMenuError(f"Please add all {MENU_SIZE} menu items")

        now = self.clock()
        week_start = next_week_start(now.date())
        items = [
            MenuItem(name=name, week_start_date=week_start, is_active=True, created_at=now)
            for name in cleaned
        ]
        with self._transaction(f"publish menu for week of {week_start}"):
            self.session.add_all(items)

        logger.info("Published menu for week of %s: %s", week_start, ", ".join(cleaned))
        return items

    @_logs_read_errors
    def get_current_menu(self, latest_week_only: bool = False) -> List[MenuItem]:
        """Active menu items whose week has already started.

        Ordered newest week first, then by name. With latest_week_only, only the
        most recent such week is returned.
        """
        today = self.today()
        query = self.session.query(MenuItem).filter(
            MenuItem.is_active.is_(True), MenuItem.week_start_date <= today
        )
        if latest_week_only:
            latest = (
                self.session.query(func.max(MenuItem.week_start_date))
                .filter(MenuItem.is_active.is_(True), MenuItem.week_start_date <= today)
                .scalar()
            )
            if latest is None:
                return []
            query = query.filter(MenuItem.week_start_date == latest)
        return query.order_by(MenuItem.week_start_date.desc(), MenuItem.name.asc()).all()
