#!/usr/bin/env python3
"""
Four Sigma Management CLI

Command-line management for the Four Sigma estimation game: database
setup, question content and scheduling, session housekeeping and a
quick look at the leaderboards.
"""

import json
import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from foursigma import create_app, db
from foursigma.models import DailyQuestion, GameSession, Question, User, UserResponse
from foursigma.services.question_provider import QuestionProvider
from foursigma.services.scheduler_service import scheduler_service
from foursigma.services.session_store import SessionStore
from foursigma.services.statistics_service import StatisticsService
from foursigma.utils.timezone_utils import utc_date

app = create_app()


@click.group()
def cli():
    """Four Sigma Management CLI"""
    pass


# Question Commands
@cli.group()
def questions():
    """Question content and daily schedule commands"""
    pass


@questions.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_questions(path):
    """Import questions from a JSON list of objects"""
    with open(path, encoding="utf-8") as f:
        try:
            rows = json.load(f)
        except json.JSONDecodeError as e:
            click.echo(f"❌ Invalid JSON: {e}")
            return

    if not isinstance(rows, list):
        click.echo("❌ Expected a JSON list of questions")
        return

    imported = 0
    for index, row in enumerate(rows):
        try:
            question = Question(
                prompt=row["prompt"],
                unit=row.get("unit", ""),
                true_value=float(row["trueValue"]),
                source_name=row.get("source", ""),
                source_url=row.get("sourceUrl", ""),
                answer_context=row.get("answerContext"),
                is_active=row.get("isActive", True),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            click.echo(f"⚠️  Skipping row {index}: {e}")
            continue

        db.session.add(question)
        imported += 1

    try:
        db.session.commit()
        click.echo(f"✅ Imported {imported} questions")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error importing questions: {str(e)}")
        logging.error(f"Question import failed - SQL error: {e}")


@questions.command()
@click.argument("day", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.argument("question_ids", type=int, nargs=-1, required=True)
@with_appcontext
def schedule(day, question_ids):
    """Publish QUESTION_IDS (in order) as the questions for DAY"""
    day = day.date()
    found = QuestionProvider().by_ids(question_ids)
    missing = [qid for qid in question_ids if qid not in found]
    if missing:
        click.echo(f"❌ Unknown question ids: {', '.join(map(str, missing))}")
        return

    try:
        DailyQuestion.query.filter_by(date=day).delete()
        for order, question_id in enumerate(question_ids):
            db.session.add(
                DailyQuestion(date=day, question_id=question_id, display_order=order)
            )
        db.session.commit()
        click.echo(f"✅ Scheduled {len(question_ids)} questions for {day.isoformat()}")
    except IntegrityError as e:
        db.session.rollback()
        click.echo("❌ Duplicate question ids in schedule")
        logging.error(f"Schedule failed - integrity error: {e}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error scheduling questions: {str(e)}")
        logging.error(f"Schedule failed - SQL error: {e}")


@questions.command()
@click.option(
    "--date",
    "day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="UTC date to show (default: today)",
)
@with_appcontext
def today(day):
    """Show the questions served for a date"""
    day = day.date() if day else utc_date()
    daily = QuestionProvider().daily_questions(day)
    if not daily:
        click.echo(f"⚠️  No questions available for {day.isoformat()}")
        return

    click.echo(f"📅 Questions for {day.isoformat()}")
    for question in daily:
        unit = f" ({question.unit})" if question.unit else ""
        click.echo(f"   #{question.id}: {question.prompt}{unit} -> {question.true_value}")


# Session Commands
@cli.group()
def sessions():
    """Game session housekeeping"""
    pass


@sessions.command()
@with_appcontext
def purge():
    """Delete expired sessions now"""
    try:
        purged = SessionStore().purge_expired()
        click.echo(f"✅ Purged {purged} expired sessions")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error purging sessions: {str(e)}")


# Leaderboard Commands
@cli.group()
def leaderboard():
    """Leaderboard commands"""
    pass


@leaderboard.command()
@click.option(
    "--type",
    "board_type",
    type=click.Choice(["overall", "best-guesses"]),
    default="overall",
    help="Leaderboard to show",
)
@with_appcontext
def show(board_type):
    """Print a leaderboard"""
    statistics = StatisticsService()
    if board_type == "overall":
        rows = statistics.overall_leaderboard()
        click.echo("🏆 Overall (best single day)")
        for row in rows:
            click.echo(
                f"   {row['rank']:>2}. {row['username']:<24} {row['score']:>10} "
                f"({row['gamesPlayed']} games)"
            )
    else:
        rows = statistics.best_guesses()
        click.echo("🎯 Best single guesses")
        for row in rows:
            click.echo(
                f"   {row['rank']:>2}. {row['username']:<24} {row['score']:>10} "
                f"[{row['lowerBound']}, {row['upperBound']}] {row['questionText']}"
            )

    if not rows:
        click.echo("   (no responses yet)")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except Exception as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except Exception as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    try:
        if os.path.exists("migrations"):
            click.echo("❌ Migrations directory already exists!")
            return

        from flask_migrate import init as flask_migrate_init

        flask_migrate_init()
        click.echo("✅ Migrations repository initialized!")
    except Exception as e:
        click.echo(f"❌ Error initializing migrations: {str(e)}")


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    try:
        migrate(message=message)
        click.echo(f"✅ Migration created: {message}")
    except Exception as e:
        click.echo(f"❌ Error creating migration: {str(e)}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    try:
        upgrade(revision=revision)
        click.echo(f"✅ Migrations applied to {revision}")
    except Exception as e:
        click.echo(f"❌ Error applying migrations: {str(e)}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🎯 Four Sigma Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except Exception as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    day = utc_date()
    daily = QuestionProvider().daily_questions(day)
    if daily:
        click.echo(f"✅ Today ({day.isoformat()}): {len(daily)} questions")
    else:
        click.echo(f"⚠️  Today ({day.isoformat()}): no questions available")

    active_questions = Question.query.filter_by(is_active=True).count()
    click.echo(f"❓ Active Questions: {active_questions}")

    player_count = User.query.filter(User.games_played > 0).count()
    click.echo(f"👥 Players: {player_count}")

    open_sessions = GameSession.query.filter(
        GameSession.finalized_at.is_(None)
    ).count()
    click.echo(f"🎮 Open Sessions: {open_sessions}")

    response_count = UserResponse.query.count()
    click.echo(f"📝 Responses: {response_count}")

    scheduler = scheduler_service.get_status()
    if scheduler["is_running"]:
        for job in scheduler["jobs"]:
            click.echo(f"⏰ Scheduler: {job['name']} next at {job['next_run']}")
    else:
        click.echo("⏸️  Scheduler: not running")


if __name__ == "__main__":
    with app.app_context():
        cli()
