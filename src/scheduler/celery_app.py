"""
Celery application configuration.
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init
from config.settings import get_settings
from src.utils.logging import configure_logging

settings = get_settings()

# Create Celery app
app = Celery(
    'stock_calls',
    broker=f'redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/0',
    backend=f'redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/0',
    include=['src.scheduler.tasks']
)

# Celery configuration
app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes max per task
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Schedule configuration
app.conf.beat_schedule = {
    'check-open-posts-daily': {
        'task': 'src.scheduler.tasks.check_open_posts_daily',
        'schedule': crontab(hour=22, minute=0),  # 10 PM UTC daily, after the US close
    },
}

@worker_process_init.connect
def _configure_worker_logging(**kwargs):
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

if __name__ == '__main__':
    app.start()
