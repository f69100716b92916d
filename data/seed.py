"""
Seed Dataset for the Local Fallback Store

Fixed-id records written the first time a collection key is missing from
storage (and again by ``LocalStore.clear_all_data``). Timestamps are relative
to the moment of seeding; ids never change.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List

from config import settings
from utils.helpers import to_iso


def _next_weekday(now: datetime, weekday: int) -> str:
    """Date (YYYY-MM-DD) of the next given weekday strictly after today (Mon=0)."""
    days_ahead = (weekday - now.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return (now + timedelta(days=days_ahead)).date().isoformat()


def build_seed(now: datetime) -> Dict[str, List[Dict[str, Any]]]:
    """
    Build the seed rows for every collection.

    Args:
        now: Reference time for timestamps and event dates.

    Returns:
        dict: Table name -> list of rows.
    """
    today = to_iso(now)
    yesterday = to_iso(now - timedelta(days=1))

    blog_categories = [
        {
            "id": "cat-001",
            "name": "Reflexiones",
            "slug": "reflexiones",
            "description": "Meditaciones y enseñanzas para la vida diaria.",
            "color": "#2563eb",
            "display_order": 1,
            "is_active": True,
            "created_at": today,
            "updated_at": today,
        },
        {
            "id": "cat-002",
            "name": "Noticias",
            "slug": "noticias",
            "description": "Novedades de nuestra congregación.",
            "color": "#16a34a",
            "display_order": 2,
            "is_active": True,
            "created_at": today,
            "updated_at": today,
        },
    ]

    blog_posts = [
        {
            "id": "blog-001",
            "slug": "bienvenidos-a-lugar-de-refugio",
            "title": "Bienvenidos a Lugar de Refugio",
            "content": (
                "Nos complace darles la bienvenida a nuestra comunidad de fe. Aquí encontrarán "
                "un lugar donde crecer espiritualmente y formar parte de una familia que se ama "
                "y se apoya mutuamente."
            ),
            "excerpt": "Bienvenidos a nuestra comunidad de fe donde encontrarán amor y apoyo.",
            "author_id": "pastor-001",
            "author_name": "Pastor Principal",
            "category_id": "cat-002",
            "tags": ["bienvenida", "comunidad", "fe"],
            "is_published": True,
            "is_featured": True,
            "view_count": 0,
            "like_count": 0,
            "comment_count": 0,
            "created_at": today,
            "updated_at": today,
            "published_at": today,
        },
        {
            "id": "blog-002",
            "slug": "la-importancia-de-la-oracion",
            "title": "La Importancia de la Oración",
            "content": (
                "La oración es el medio por el cual nos comunicamos con Dios. Es un tiempo "
                "sagrado donde podemos expresar nuestras necesidades, agradecimientos y adoración."
            ),
            "excerpt": "Descubre el poder transformador de la oración en tu vida diaria.",
            "author_id": "pastor-001",
            "author_name": "Pastor Principal",
            "category_id": "cat-001",
            "tags": ["oración", "espiritualidad", "crecimiento"],
            "is_published": True,
            "is_featured": False,
            "view_count": 0,
            "like_count": 0,
            "comment_count": 0,
            "created_at": yesterday,
            "updated_at": yesterday,
            "published_at": yesterday,
        },
    ]

    sermon_categories = [
        {
            "id": "scat-001",
            "name": "Fundamentos de la Fe",
            "slug": "fundamentos-de-la-fe",
            "description": "Serie sobre las bases de la vida cristiana.",
            "color": "#9333ea",
            "display_order": 1,
            "is_active": True,
            "created_at": today,
            "updated_at": today,
        },
    ]

    sermons = [
        {
            "id": "sermon-001",
            "slug": "el-amor-de-dios",
            "title": "El Amor de Dios",
            "description": "Una reflexión sobre el amor incondicional de Dios hacia la humanidad.",
            "preacher": "Pastor Principal",
            "scripture_reference": "Juan 3:16",
            "series": "Fundamentos de la Fe",
            "duration": 35,
            "category_id": "scat-001",
            "is_published": True,
            "is_featured": True,
            "view_count": 0,
            "like_count": 0,
            "comment_count": 0,
            "preached_at": now.date().isoformat(),
            "created_at": today,
            "updated_at": today,
            "published_at": today,
        },
    ]

    events = [
        {
            "id": "event-001",
            "slug": "servicio-dominical",
            "title": "Servicio Dominical",
            "description": "Únete a nosotros para un tiempo de adoración, enseñanza y comunión.",
            "event_date": _next_weekday(now, 6),
            "event_time": "10:00",
            "location_name": "Santuario Principal",
            "category": "service",
            "current_attendees": 0,
            "is_published": True,
            "is_active": True,
            "view_count": 0,
            "like_count": 0,
            "comment_count": 0,
            "created_at": today,
            "updated_at": today,
        },
        {
            "id": "event-002",
            "slug": "estudio-biblico-semanal",
            "title": "Estudio Bíblico Semanal",
            "description": "Profundiza en la Palabra de Dios con nuestro estudio bíblico interactivo.",
            "event_date": _next_weekday(now, 2),
            "event_time": "19:00",
            "location_name": "Sala de Conferencias",
            "category": "workshop",
            "current_attendees": 0,
            "is_published": True,
            "is_active": True,
            "view_count": 0,
            "like_count": 0,
            "comment_count": 0,
            "created_at": today,
            "updated_at": today,
        },
    ]

    ministries = [
        {
            "id": "ministry-001",
            "name": "Ministerio de Jóvenes",
            "description": "Un espacio para que los jóvenes crezcan en su fe y desarrollen liderazgo.",
            "leader_name": "Pastor de Jóvenes",
            "meeting_day": "Viernes",
            "meeting_time": "19:00",
            "location": "Sala de Jóvenes",
            "active": True,
            "created_at": today,
            "updated_at": today,
        },
        {
            "id": "ministry-002",
            "name": "Ministerio de Niños",
            "description": "Enseñanza bíblica adaptada para los más pequeños de la congregación.",
            "leader_name": "Coordinadora de Niños",
            "meeting_day": "Domingo",
            "meeting_time": "10:00",
            "location": "Aula Infantil",
            "active": True,
            "created_at": today,
            "updated_at": today,
        },
    ]

    testimonies = [
        {
            "id": "testimony-001",
            "title": "Dios cambió mi vida",
            "content": (
                "Quiero compartir cómo Dios transformó mi vida cuando más lo necesitaba. "
                "Su amor y gracia me dieron una nueva esperanza."
            ),
            "author_name": "María González",
            "approved": True,
            "featured": True,
            "created_at": today,
            "updated_at": today,
        },
    ]

    return {
        settings.BLOG_CATEGORIES_TABLE: blog_categories,
        settings.BLOG_POSTS_TABLE: blog_posts,
        settings.BLOG_INTERACTIONS_TABLE: [],
        settings.SERMON_CATEGORIES_TABLE: sermon_categories,
        settings.SERMONS_TABLE: sermons,
        settings.SERMON_INTERACTIONS_TABLE: [],
        settings.EVENTS_TABLE: events,
        settings.MINISTRIES_TABLE: ministries,
        settings.TESTIMONIES_TABLE: testimonies,
    }


def build_seed_users(now: datetime) -> List[Dict[str, Any]]:
    """
    Default users for the local authentication.

    Args:
        now: Reference time for ``created_at``.

    Returns:
        list: User dictionaries (no password hashes).
    """
    created = to_iso(now)
    return [
        {
            "id": "admin-001",
            "email": "admin@lugarderefugio.com",
            "full_name": "Administrador",
            "role": "admin",
            "created_at": created,
        },
        {
            "id": "pastor-001",
            "email": "pastor@lugarderefugio.com",
            "full_name": "Pastor Principal",
            "role": "pastor",
            "created_at": created,
        },
        {
            "id": "member-001",
            "email": "miembro@lugarderefugio.com",
            "full_name": "Miembro de Prueba",
            "role": "member",
            "created_at": created,
        },
    ]
