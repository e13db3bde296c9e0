"""Shared fixtures: an in-memory stand-in for a pymongo Database.

Only the pieces the catalog uses are implemented: `find_one`, `find`,
equality (with MongoDB's array-contains semantics), `$in`, `$regex` with
`$options` and inclusion projections. Every read is recorded in `reads`
so tests can assert on access patterns.
"""
import re

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from schemas import Desarrollador, Genero, Plataforma, Videojuego

_MISSING = object()


def _matches_value(value, cond):
    if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
        for op, arg in cond.items():
            if op == "$in":
                candidates = value if isinstance(value, list) else [value]
                if not any(c in arg for c in candidates if c is not _MISSING):
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                if not isinstance(value, str) or not re.search(arg, value, flags):
                    return False
            elif op == "$options":
                continue
            else:
                raise NotImplementedError(op)
        return True
    if isinstance(value, list):
        return cond in value or value == cond
    return value == cond


def _matches(doc, query):
    return all(_matches_value(doc.get(k, _MISSING), cond) for k, cond in query.items())


def _project(doc, projection):
    if not projection:
        return dict(doc)
    out = {"_id": doc["_id"]}
    for key, include in projection.items():
        if include and key in doc:
            out[key] = doc[key]
    return out


class FakeCollection:
    def __init__(self, name, docs=None, reads=None):
        self.name = name
        self.docs = list(docs or [])
        self.reads = reads if reads is not None else []
        self.error = None

    def _read(self, kind, query, projection):
        self.reads.append((self.name, kind, query))
        if self.error is not None:
            raise self.error
        return [_project(d, projection) for d in self.docs if _matches(d, query or {})]

    def find(self, filter=None, projection=None):
        return iter(self._read("find", filter, projection))

    def find_one(self, filter=None, projection=None):
        found = self._read("find_one", filter, projection)
        return found[0] if found else None


class FakeDatabase:
    name = "videojuegos_test"

    def __init__(self):
        self.reads = []
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name, reads=self.reads)
        return self.collections[name]

    def insert(self, collection_name, model):
        doc = model.model_dump(exclude_none=True) if hasattr(model, "model_dump") else dict(model)
        doc.setdefault("_id", ObjectId())
        self[collection_name].docs.append(doc)
        return doc["_id"]

    def fail_on(self, collection_name, error):
        self[collection_name].error = error

    def list_collection_names(self):
        return [n for n, c in self.collections.items() if c.docs]


@pytest.fixture
def empty_db():
    return FakeDatabase()


@pytest.fixture
def seeded():
    """A small catalog; returns `(db, ids)` where ids maps labels to `_id`s."""
    db = FakeDatabase()
    ids = {}
    ids["action"] = db.insert("generos", Genero(nombre="Action"))
    ids["rpg"] = db.insert("generos", Genero(nombre="RPG"))
    ids["nintendo"] = db.insert("desarrolladores", Desarrollador(nombre="Nintendo"))
    ids["pc"] = db.insert("plataformas", Plataforma(nombre="PC"))
    ids["switch"] = db.insert("plataformas", Plataforma(nombre="Switch"))
    ids["gone"] = ObjectId()

    ids["mario"] = db.insert("videojuegos", Videojuego(
        titulo="Super Mario Bros", anio_lanzamiento=1985, edad_minima=3,
        genero_id=ids["action"], desarrollador_id=ids["nintendo"],
        plataformas=[ids["switch"]],
    ))
    ids["kart"] = db.insert("videojuegos", Videojuego(
        titulo="MARIO Kart", genero_id=ids["action"], desarrollador_id=ids["nintendo"],
        plataformas=[ids["switch"], ids["pc"]],
    ))
    ids["zelda"] = db.insert("videojuegos", Videojuego(
        titulo="Zelda", genero_id=ids["rpg"], plataformas=[ids["pc"], ids["gone"]],
    ))
    ids["indie"] = db.insert("videojuegos", Videojuego(titulo="Untitled Indie", disponible=False))
    db.reads.clear()
    return db, ids


@pytest.fixture
def client_for():
    """Build a TestClient whose `get_db` dependency returns the given fake."""
    import main
    from database import get_db

    def make(db):
        main.app.dependency_overrides[get_db] = lambda: db
        return TestClient(main.app)

    yield make
    main.app.dependency_overrides.clear()
