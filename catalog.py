"""Catalog queries: filter building and relation population.

Games store weak references (bare `_id` values) to genres, developers and
platforms. This module turns human-readable listing criteria into a MongoDB
filter and turns stored games back into display-friendly records with the
referenced names attached.

Every function takes the database handle explicitly; nothing here owns a
connection. Lookup misses are values (`None`, absent fields), never errors.
Database errors propagate to the caller.
"""

import logging
import re
from typing import Any, Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

from schemas import NameRef, VideojuegoFilters

logger = logging.getLogger("videojuegos.catalog")

GAMES = "videojuegos"
GENRES = "generos"
DEVELOPERS = "desarrolladores"
PLATFORMS = "plataformas"

NAME_PROJECTION = {"nombre": 1}

# Matches no document: `$in` against an empty list.
NO_MATCH = {"$in": []}


def as_object_id(value: Any) -> Any:
    """Coerce a stored reference to ObjectId when it is a valid hex string.

    Seeded data sometimes keeps references as their string form; anything
    that is not a valid ObjectId string is returned unchanged.
    """
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def resolve_id_by_name(db: Database, collection_name: str, name: str) -> Optional[ObjectId]:
    """Return the `_id` of the document whose `nombre` equals `name`, or None."""
    doc = db[collection_name].find_one({"nombre": name})
    if doc is None:
        logger.debug("No %s named %r", collection_name, name)
        return None
    return doc["_id"]


def build_filter(db: Database, criteria: Optional[VideojuegoFilters] = None) -> dict:
    """Build the `videojuegos` filter for the given listing criteria.

    An unknown genre or platform name still adds a constraint, one that
    matches nothing, so the listing comes back empty instead of unfiltered.
    The title criterion is a literal, case-insensitive substring match.
    """
    query: dict = {}
    if criteria is None:
        return query

    if criteria.genero:
        genre_id = resolve_id_by_name(db, GENRES, criteria.genero)
        query["genero_id"] = genre_id if genre_id is not None else NO_MATCH

    if criteria.plataforma:
        platform_id = resolve_id_by_name(db, PLATFORMS, criteria.plataforma)
        query["plataformas"] = platform_id if platform_id is not None else NO_MATCH

    if criteria.titulo:
        query["titulo"] = {"$regex": re.escape(criteria.titulo), "$options": "i"}

    logger.debug("Built games filter %r", query)
    return query


def fetch_games(db: Database, query: Optional[dict] = None) -> List[dict]:
    return list(db[GAMES].find(query or {}))


def _name_ref(doc: dict) -> dict:
    return NameRef(nombre=doc.get("nombre")).model_dump(exclude_none=True)


def _platform_ids(game: dict) -> list:
    """Stored platform references, or an empty list when the field is not a list."""
    value = game.get("plataformas")
    return value if isinstance(value, list) else []


def populate_game(db: Database, game: dict) -> dict:
    """Attach genre, developer and platform names to one game.

    Issues up to three reads: one per single reference and one `$in` lookup
    for the platform list. Unresolved references are left out of the result.
    """
    out = dict(game)

    if game.get("genero_id"):
        genre = db[GENRES].find_one({"_id": as_object_id(game["genero_id"])}, NAME_PROJECTION)
        if genre:
            out["genero"] = _name_ref(genre)

    if game.get("desarrollador_id"):
        developer = db[DEVELOPERS].find_one({"_id": as_object_id(game["desarrollador_id"])}, NAME_PROJECTION)
        if developer:
            out["desarrollador"] = _name_ref(developer)

    platform_ids = _platform_ids(game)
    if platform_ids:
        ids = [as_object_id(p) for p in platform_ids]
        platforms = db[PLATFORMS].find({"_id": {"$in": ids}}, NAME_PROJECTION)
        out["plataformas"] = [_name_ref(p) for p in platforms]

    return out


def _lookup_names(db: Database, collection_name: str, ids: Iterable[Any]) -> dict:
    ids = list(ids)
    if not ids:
        return {}
    docs = db[collection_name].find({"_id": {"$in": ids}}, NAME_PROJECTION)
    return {doc["_id"]: _name_ref(doc) for doc in docs}


def _populate_batched(db: Database, games: List[dict]) -> List[dict]:
    genre_ids, developer_ids, platform_ids = {}, {}, {}
    for game in games:
        if game.get("genero_id"):
            genre_ids.setdefault(as_object_id(game["genero_id"]), None)
        if game.get("desarrollador_id"):
            developer_ids.setdefault(as_object_id(game["desarrollador_id"]), None)
        for p in _platform_ids(game):
            platform_ids.setdefault(as_object_id(p), None)

    genres = _lookup_names(db, GENRES, genre_ids)
    developers = _lookup_names(db, DEVELOPERS, developer_ids)
    platforms = _lookup_names(db, PLATFORMS, platform_ids)

    out = []
    for game in games:
        item = dict(game)
        if game.get("genero_id"):
            genre = genres.get(as_object_id(game["genero_id"]))
            if genre is not None:
                item["genero"] = genre
        if game.get("desarrollador_id"):
            developer = developers.get(as_object_id(game["desarrollador_id"]))
            if developer is not None:
                item["desarrollador"] = developer
        if _platform_ids(game):
            seen = set()
            resolved = []
            for p in _platform_ids(game):
                pid = as_object_id(p)
                if pid in platforms and pid not in seen:
                    seen.add(pid)
                    resolved.append(platforms[pid])
            item["plataformas"] = resolved
        out.append(item)
    return out


def populate_games(db: Database, games: List[dict], batched: bool = False) -> List[dict]:
    """Populate every game, keeping input order and count.

    By default each game is resolved on its own, one after another. With
    `batched=True` the distinct ids of the whole batch are looked up with
    one `$in` query per collection and mapped back per game; platform lists
    then follow each game's stored order.
    """
    if batched:
        return _populate_batched(db, games)
    return [populate_game(db, game) for game in games]


def list_all(db: Database, collection_name: str) -> List[dict]:
    return list(db[collection_name].find({}))


def search_games(db: Database, criteria: Optional[VideojuegoFilters] = None, batched: bool = False) -> List[dict]:
    """Filter, fetch and populate games in one call."""
    query = build_filter(db, criteria)
    games = fetch_games(db, query)
    logger.debug("Fetched %d games", len(games))
    return populate_games(db, games, batched=batched)
