import logging
import os

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

load_dotenv()

from models import db
from services.errors import TaskServiceError
from services.task_routes import (
    create_tasks_route,
    delete_all_tasks_route,
    delete_task_route,
    generate_tasks_route,
    get_task_route,
    list_tasks_route,
    reorder_tasks_route,
    update_task_route,
)
from services.task_store import DEFAULT_BATCH_SIZE, TaskStore

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URI = 'sqlite:///tasks.db'


def get_store():
    return current_app.extensions['task_store']


def create_app(config=None):
    """Build the Flask app; `config` overrides anything read from the environment."""
    app = Flask(__name__)
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('TASKS_DATABASE_URI', DEFAULT_DATABASE_URI)
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['TASKS_PAGE_LIMIT'] = int(os.environ.get('TASKS_PAGE_LIMIT', 10))
    app.config['TASKS_GENERATE_BATCH_SIZE'] = int(os.environ.get('TASKS_GENERATE_BATCH_SIZE', DEFAULT_BATCH_SIZE))
    app.config['TASKS_GENERATE_MAX_COUNT'] = int(os.environ.get('TASKS_GENERATE_MAX_COUNT', 1_000_000))
    if config:
        app.config.update(config)

    db.init_app(app)
    store = TaskStore(db, batch_size=app.config['TASKS_GENERATE_BATCH_SIZE'])
    app.extensions['task_store'] = store

    with app.app_context():
        db.create_all()
        logger.info("Task store ready db=%s", app.config['SQLALCHEMY_DATABASE_URI'])

    register_error_handlers(app)
    register_request_logging(app)
    register_routes(app)
    return app


def register_error_handlers(app):
    @app.errorhandler(TaskServiceError)
    def _task_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify({'error': exc.description}), exc.code


def register_request_logging(app):
    @app.after_request
    def _log_request(response):
        logger.info("%s %s -> %s", request.method, request.full_path.rstrip('?'), response.status_code)
        return response


def register_routes(app):
    @app.route('/tasks', methods=['GET'])
    def list_tasks():
        return list_tasks_route(
            request=request,
            store=get_store(),
            default_limit=current_app.config['TASKS_PAGE_LIMIT'],
        )

    @app.route('/tasks', methods=['POST'])
    def create_tasks():
        return create_tasks_route(request=request, store=get_store())

    @app.route('/tasks', methods=['DELETE'])
    def delete_all_tasks():
        return delete_all_tasks_route(store=get_store())

    @app.route('/tasks/generate', methods=['POST'])
    def generate_tasks():
        return generate_tasks_route(
            request=request,
            store=get_store(),
            max_count=current_app.config['TASKS_GENERATE_MAX_COUNT'],
        )

    @app.route('/tasks/reorder', methods=['PATCH'])
    def reorder_tasks():
        return reorder_tasks_route(request=request, store=get_store())

    @app.route('/tasks/<task_id>', methods=['GET'])
    def get_task(task_id):
        return get_task_route(task_id, store=get_store())

    @app.route('/tasks/<task_id>', methods=['PUT'])
    def update_task(task_id):
        return update_task_route(task_id, request=request, store=get_store())

    @app.route('/tasks/<task_id>', methods=['DELETE'])
    def delete_task(task_id):
        return delete_task_route(task_id, store=get_store())


if __name__ == '__main__':
    logging.basicConfig(
        level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    debug_enabled = os.environ.get('FLASK_DEBUG', '').lower() in ('1', 'true', 'yes', 'on')
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', 3000)), debug=debug_enabled)
