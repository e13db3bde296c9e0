"""
Database Schemas

MongoDB collection schemas for the video game catalog, described with
Pydantic models. The database is seeded externally; these models document
the shape of the stored documents and validate request criteria.

Collection names follow the seeded database:
- Videojuego -> "videojuegos" collection
- Genero -> "generos" collection
- Desarrollador -> "desarrolladores" collection
- Plataforma -> "plataformas" collection
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


class Videojuego(BaseModel):
    """
    Games collection schema
    Collection name: "videojuegos"
    """
    titulo: str = Field(..., description="Game title, e.g., 'Super Mario Bros'")
    anio_lanzamiento: Optional[int] = Field(None, description="Release year")
    edad_minima: Optional[int] = Field(None, description="Minimum recommended age")
    disponible: bool = Field(True, description="Whether the game is available")
    genero_id: Optional[Any] = Field(None, description="Reference to a genre _id")
    desarrollador_id: Optional[Any] = Field(None, description="Reference to a developer _id")
    plataformas: List[Any] = Field(default_factory=list, description="References to platform _ids")


class Genero(BaseModel):
    """
    Genres collection schema
    Collection name: "generos"
    """
    nombre: str = Field(..., description="Genre name, unique by convention")


class Desarrollador(BaseModel):
    """
    Developers collection schema
    Collection name: "desarrolladores"
    """
    nombre: str = Field(..., description="Studio or developer name")


class Plataforma(BaseModel):
    """
    Platforms collection schema
    Collection name: "plataformas"
    """
    nombre: str = Field(..., description="Platform name, e.g., 'PC'")


class NameRef(BaseModel):
    """Display-friendly form of a populated reference."""
    nombre: Optional[str] = None


class VideojuegoFilters(BaseModel):
    """Optional listing criteria for /api/videojuegos. Blank values count as absent."""
    genero: Optional[str] = None
    plataforma: Optional[str] = None
    titulo: Optional[str] = None

    @field_validator("genero", "plataforma", "titulo", mode="before")
    @classmethod
    def blank_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v
