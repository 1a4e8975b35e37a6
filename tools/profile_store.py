"""Profile and clothing persistence with a SQLite implementation."""
from __future__ import annotations

import asyncio
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple
from uuid import uuid4

from pydantic import ValidationError

from logic.errors import PersistenceError, WardrobeValidationError
from logic.validation import ProfileSubmission
from models.clothing import ClothingRecord, SavedClothingItem
from models.profile import ProfileFields, UserProfile
from models.taxonomy import ClothingCategory, validate_category, validate_dressing_style
from tools.observability import instrument_call


class ProfileStore(ABC):
    """Persistence interface for profiles and wardrobe items."""

    @abstractmethod
    async def save_profile_and_clothing(
        self, user_id: str, fields: ProfileFields, top: ClothingRecord, bottom: ClothingRecord
    ) -> Tuple[SavedClothingItem, SavedClothingItem]:
        """Upsert the profile and create both items, all or nothing."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    async def list_clothing(self, user_id: str) -> List[SavedClothingItem]:
        """Return the user's items, newest first."""

    @abstractmethod
    async def create_clothing(self, user_id: str, record: ClothingRecord) -> SavedClothingItem:
        ...

    @abstractmethod
    async def set_profile_picture(self, user_id: str, url: str) -> UserProfile:
        ...

    async def has_profile(self, user_id: str) -> bool:
        """A profile counts as set up once it has a TOP and a BOTTOM item."""

        profile = await self.get_profile(user_id)
        if profile is None:
            return False
        categories = {item.category for item in await self.list_clothing(user_id)}
        return ClothingCategory.TOP in categories and ClothingCategory.BOTTOM in categories


def _check_submission(fields: ProfileFields, top: ClothingRecord, bottom: ClothingRecord) -> None:
    try:
        ProfileSubmission.model_validate(
            {
                "height": fields.height,
                "weight": fields.weight,
                "age": fields.age,
                "dressing_style": fields.dressing_style,
                "top": _record_fields(top),
                "bottom": _record_fields(bottom),
            }
        )
    except ValidationError as exc:
        raise WardrobeValidationError("All fields are required. Please complete the entire setup.") from exc


def _record_fields(record: ClothingRecord) -> dict:
    return {
        "name": record.name,
        "description": record.description,
        "category": record.category.value,
        "color": record.color,
        "brand": record.brand,
        "image_url": record.image_url,
    }


class SQLiteProfileStore(ProfileStore):
    """Local SQLite-backed store for profiles and clothing."""

    def __init__(self, database_path: str | Path = "data/wardrobe.db") -> None:
        self.database_path = Path(database_path)
        if self.database_path.parent and not self.database_path.parent.exists():
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS user_profiles (
                    user_id TEXT PRIMARY KEY,
                    height REAL,
                    weight REAL,
                    age INTEGER,
                    dressing_style TEXT NOT NULL DEFAULT 'CASUAL',
                    profile_pic TEXT,
                    updated_at REAL
                );
                CREATE TABLE IF NOT EXISTS clothing (
                    item_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    category TEXT NOT NULL,
                    color TEXT,
                    brand TEXT,
                    image_url TEXT NOT NULL,
                    created_at REAL
                );
                CREATE INDEX IF NOT EXISTS clothing_user_idx ON clothing(user_id, created_at);
                """
            )

    @staticmethod
    def _insert_clothing(conn: sqlite3.Connection, user_id: str, record: ClothingRecord) -> SavedClothingItem:
        item_id = uuid4().hex
        conn.execute(
            """
            INSERT INTO clothing (item_id, user_id, name, description, category, color, brand, image_url, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item_id,
                user_id,
                record.name,
                record.description,
                record.category.value,
                record.color,
                record.brand,
                record.image_url,
                time.time(),
            ),
        )
        return SavedClothingItem(
            item_id=item_id,
            name=record.name,
            category=record.category,
            image_url=record.image_url,
            color=record.color,
            brand=record.brand,
            description=record.description,
        )

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> SavedClothingItem:
        return SavedClothingItem(
            item_id=row["item_id"],
            name=row["name"],
            category=validate_category(row["category"]),
            image_url=row["image_url"],
            color=row["color"],
            brand=row["brand"],
            description=row["description"],
        )

    @staticmethod
    def _row_to_profile(row: sqlite3.Row) -> UserProfile:
        return UserProfile(
            user_id=row["user_id"],
            height=row["height"],
            weight=row["weight"],
            age=row["age"],
            dressing_style=validate_dressing_style(row["dressing_style"]),
            profile_pic=row["profile_pic"],
        )

    def _save_profile_and_clothing_sync(
        self, user_id: str, fields: ProfileFields, top: ClothingRecord, bottom: ClothingRecord
    ) -> Tuple[SavedClothingItem, SavedClothingItem]:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_profiles (user_id, height, weight, age, dressing_style, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    height=excluded.height,
                    weight=excluded.weight,
                    age=excluded.age,
                    dressing_style=excluded.dressing_style,
                    updated_at=excluded.updated_at
                """,
                (user_id, fields.height, fields.weight, fields.age, fields.dressing_style.value, time.time()),
            )
            saved_top = self._insert_clothing(conn, user_id, top)
            saved_bottom = self._insert_clothing(conn, user_id, bottom)
        return saved_top, saved_bottom

    @instrument_call("save_profile_and_clothing")
    async def save_profile_and_clothing(
        self, user_id: str, fields: ProfileFields, top: ClothingRecord, bottom: ClothingRecord
    ) -> Tuple[SavedClothingItem, SavedClothingItem]:
        _check_submission(fields, top, bottom)
        try:
            return await asyncio.to_thread(self._save_profile_and_clothing_sync, user_id, fields, top, bottom)
        except sqlite3.Error as exc:
            raise PersistenceError() from exc

    def _get_profile_sync(self, user_id: str) -> Optional[UserProfile]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_profile(row) if row else None

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            return await asyncio.to_thread(self._get_profile_sync, user_id)
        except sqlite3.Error as exc:
            raise PersistenceError("Failed to check profile") from exc

    def _list_clothing_sync(self, user_id: str) -> List[SavedClothingItem]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM clothing WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    async def list_clothing(self, user_id: str) -> List[SavedClothingItem]:
        try:
            return await asyncio.to_thread(self._list_clothing_sync, user_id)
        except sqlite3.Error as exc:
            raise PersistenceError("Failed to fetch clothing") from exc

    def _create_clothing_sync(self, user_id: str, record: ClothingRecord) -> SavedClothingItem:
        with self._connect() as conn:
            return self._insert_clothing(conn, user_id, record)

    @instrument_call("create_clothing")
    async def create_clothing(self, user_id: str, record: ClothingRecord) -> SavedClothingItem:
        if not record.name or not record.image_url:
            raise WardrobeValidationError("Clothing items must have a name and image.")
        try:
            return await asyncio.to_thread(self._create_clothing_sync, user_id, record)
        except sqlite3.Error as exc:
            raise PersistenceError("Failed to save clothing") from exc

    def _set_profile_picture_sync(self, user_id: str, url: str) -> UserProfile:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_profiles (user_id, profile_pic, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET profile_pic=excluded.profile_pic, updated_at=excluded.updated_at
                """,
                (user_id, url, time.time()),
            )
            row = conn.execute("SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_profile(row)

    @instrument_call("set_profile_picture")
    async def set_profile_picture(self, user_id: str, url: str) -> UserProfile:
        if not url:
            raise WardrobeValidationError("Profile picture URL is required")
        try:
            return await asyncio.to_thread(self._set_profile_picture_sync, user_id, url)
        except sqlite3.Error as exc:
            raise PersistenceError("Failed to save profile picture") from exc


__all__ = ["ProfileStore", "SQLiteProfileStore"]
