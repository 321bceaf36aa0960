"""Quiz domain services: rounds, the run state machine and best records.

Everything except the helpers below is free of Flask; these bind the record
stores to the current application.
"""

from flask import current_app


def remote_store():
    from streakquiz import db
    from .records import SqlRecordStore
    return SqlRecordStore(db)


def local_store(app=None):
    return (app or current_app).extensions['local_records']


def question_bank(app=None):
    return (app or current_app).extensions['question_bank']


def make_reconciler(app=None):
    from .reconciler import RecordReconciler
    return RecordReconciler(local_store(app), remote_store())
