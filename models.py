from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

db = SQLAlchemy()

ROLES = ("admin", "student")
RATING_MIN = 1
RATING_MAX = 5
RATING_FIELDS = ("taste_rating", "portion_rating", "variety_rating", "overall_rating")


def _rating_check(column):
    return db.CheckConstraint(
        f'"{column}" BETWEEN {RATING_MIN} AND {RATING_MAX}',
        name=f"ck_food_ratings_{column}",
    )


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100), unique=True, nullable=False)
    # bcrypt hash, the column keeps its historical name
    password_hash = db.Column("password", db.String(100), nullable=False)
    role = db.Column(db.String(10), nullable=False)  # student/admin
    student_id = db.Column("studentId", db.String(50))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "student_id": self.student_id,
        }

    def __repr__(self):
        return f"<User {self.id} {self.email} ({self.role})>"


class FoodRating(db.Model):
    __tablename__ = "food_ratings"
    __table_args__ = (
        _rating_check("tasteRating"),
        _rating_check("portionRating"),
        _rating_check("varietyRating"),
        _rating_check("overallRating"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column("userId", db.Integer, db.ForeignKey("users.id"), nullable=False)
    taste_rating = db.Column("tasteRating", db.Integer, nullable=False)
    portion_rating = db.Column("portionRating", db.Integer, nullable=False)
    variety_rating = db.Column("varietyRating", db.Integer, nullable=False)
    overall_rating = db.Column("overallRating", db.Integer, nullable=False)
    meal_name = db.Column("mealName", db.String(100), index=True)
    comment = db.Column(db.Text)
    created_at = db.Column("createdAt", db.DateTime, nullable=False, default=datetime.now)

    @property
    def average(self):
        return sum(getattr(self, field) for field in RATING_FIELDS) / len(RATING_FIELDS)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "ratings": {
                "taste": self.taste_rating,
                "portion": self.portion_rating,
                "variety": self.variety_rating,
                "overall": self.overall_rating,
            },
            "meal_name": self.meal_name,
            "comment": self.comment,
            "created_at": self.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        }


class MenuItem(db.Model):
    __tablename__ = "menu_items"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    week_start_date = db.Column("weekStartDate", db.Date, nullable=False, index=True)
    is_active = db.Column("isActive", db.Boolean, nullable=False, default=True)
    created_at = db.Column("createdAt", db.DateTime, nullable=False, default=datetime.now)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "week_start_date": self.week_start_date.isoformat(),
            "is_active": self.is_active,
        }
