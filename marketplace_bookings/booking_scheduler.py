import asyncio
import logging
from datetime import date
from sqlalchemy.orm import Session
from .database import SessionLocal
from .config import settings
from .models import BookingStatus, utcnow
from . import crud

logger = logging.getLogger("booking_service")


async def complete_finished_bookings(db: Session, today: date | None = None) -> int:
    """
    Marks confirmed bookings whose range ended before today as completed and
    writes a BOOKING_COMPLETED outbox event for each. Returns how many changed.
    """
    today = today or date.today()
    logger.info(f"Checking for confirmed bookings that ended before {today}...")

    finished = crud.get_bookings_ended_before(db, today, status=BookingStatus.CONFIRMED)
    if not finished:
        logger.info("No finished bookings to complete.")
        return 0

    now = utcnow()
    completed = 0
    for booking in finished:
        try:
            booking.status = BookingStatus.COMPLETED
            booking.completed_at = now
            crud.create_booking_event_in_outbox(db, booking, "BOOKING_COMPLETED")
            completed += 1
        except Exception as e:
            logger.error(f"Failed to complete booking {booking.id}: {e}")
            db.rollback()
            return 0

    db.commit()  # Commit all status changes and outbox events at once
    logger.info(f"Marked {completed} bookings as completed.")
    return completed


async def run_booking_scheduler():
    """
    Main background loop for the scheduler.
    """
    while True:
        logger.info("Scheduler waking up to check for finished bookings...")
        db: Session = SessionLocal()
        try:
            await complete_finished_bookings(db)
        except Exception as e:
            logger.error(f"Error in booking scheduler loop: {e}")
            db.rollback()
        finally:
            db.close()

        await asyncio.sleep(settings.SCHEDULER_POLL_SECONDS)
