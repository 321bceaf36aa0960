import click
from streakquiz import db


def register_commands(flask_app):
    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the record tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    @click.command('check-questions')
    def check_questions_command():
        """Reports malformed entries in the question bank."""
        questions = flask_app.extensions['question_bank']
        bad = 0
        for q in questions:
            for problem in q.problems():
                bad += 1
                click.echo(f"{q.id}: {problem}")
        click.echo(f"{len(questions)} questions checked, {bad} problem(s) found")
        if bad:
            raise SystemExit(1)

    @click.command('leaderboard')
    @click.option('--limit', default=10, show_default=True, type=click.IntRange(min=1))
    def leaderboard_command(limit):
        """Prints the top users by best score and by best streak."""
        from streakquiz.services.quiz import remote_store
        from streakquiz.services.quiz.reconciler import leaderboard
        with flask_app.app_context():
            board = leaderboard(remote_store(), limit)
        click.echo('By score:')
        for pos, row in enumerate(board['by_score'], start=1):
            click.echo(f"  {pos:>3}. {row['user_id']}  {row['best_score']}")
        click.echo('By streak:')
        for pos, row in enumerate(board['by_streak'], start=1):
            click.echo(f"  {pos:>3}. {row['user_id']}  {row['best_streak']}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(check_questions_command)
    flask_app.cli.add_command(leaderboard_command)
