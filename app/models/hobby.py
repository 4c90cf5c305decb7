import uuid

from sqlalchemy import Column, String

from app.database import Base


class Hobby(Base):
    __tablename__ = "hobbies"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, unique=True, nullable=False)


# Fixed catalog the local backend seeds; the hosted table holds the same names
HOBBY_CATALOG = [
    "Photography",
    "Hiking",
    "Cooking",
    "Reading",
    "Gaming",
    "Music",
    "Travel",
    "Fitness",
    "Art",
    "Technology",
    "Gardening",
    "Writing",
    "Film",
    "Yoga",
    "Cycling",
    "Dancing",
]
