from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from ....application.use_cases.courses import get_published_course
from ....infrastructure.db import get_db
from ....infrastructure.cache import get_cache, set_cache, catalog_list_key, catalog_course_key
from ....infrastructure.metrics import cache_hits_total, cache_misses_total
from ....infrastructure.repositories import CourseRepository
from ..schemas import CourseSummaryOut, PublicCourseOut

router = APIRouter(prefix="/api/courses", tags=["catalog"])

@router.get("", response_model=list[CourseSummaryOut])
def list_courses(db: Session = Depends(get_db),
                 limit: int = Query(10, ge=1, le=100),
                 offset: int = Query(0, ge=0)):
    # Кэширование списка опубликованных курсов
    cache_key = catalog_list_key(limit, offset)
    cached = get_cache(cache_key)
    if cached is not None:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    rows = CourseRepository(db).list_published(limit, offset)
    result = [CourseSummaryOut.model_validate(row) for row in rows]
    set_cache(cache_key, [r.model_dump(mode="json") for r in result])
    return result

@router.get("/{slug}", response_model=PublicCourseOut)
def course_by_slug(slug: str, db: Session = Depends(get_db)):
    cache_key = catalog_course_key(slug)
    cached = get_cache(cache_key)
    if cached is not None:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    result = PublicCourseOut.model_validate(get_published_course(db, slug))
    set_cache(cache_key, result.model_dump(mode="json"))
    return result
