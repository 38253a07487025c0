from sqlmodel import Session

from boardreview.demo import seed_demo
from boardreview.services import ReviewQueueService


def test_seed_demo_populates_every_queue(settings, engine) -> None:
    with Session(engine) as session:
        summary = seed_demo(session)
        again = seed_demo(session)

    assert summary is not None
    assert summary.articles == 6
    assert again is None

    service = ReviewQueueService(settings)
    manager_queue = service.reset_queue(3)
    totals = {}
    for queue_type in ("Librarian Review", "Abstract Review", "Full Text Review", "On Hold Review"):
        queue_id = service.update_filters(manager_queue, 3, queue_type=queue_type)
        totals[queue_type] = service.build_queue_view(queue_id, 3).pager.total

    assert totals == {
        "Librarian Review": 2,
        "Abstract Review": 2,
        "Full Text Review": 1,
        "On Hold Review": 1,
    }


def test_demo_articles_render_filtered_types(settings, engine) -> None:
    with Session(engine) as session:
        seed_demo(session)
    service = ReviewQueueService(settings)

    view = service.build_queue_view(service.reset_queue(2), 2)

    assert view.pager.total == 2
    assert {article.types for article in view.articles} == {"Randomized Controlled Trial"}
    assert {article.tags for article in view.articles} == {""}
