"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server with WebSocket support for training MyNet
digit classifiers.

This module provides endpoints for:
- Creating and managing networks in memory
- Training networks with per-batch progress updates via WebSockets
- Predicting digits and evaluating accuracy on the MNIST test split
- Rendering the training loss curve as a PNG

The server uses:
- Flask for REST API endpoints
- Flask-SocketIO for WebSocket communication
- Gevent for background training tasks
- Matplotlib (Agg backend) for loss charts
"""

import os
import sys
import uuid
import base64
import logging
from io import BytesIO
from typing import Any, Dict, List, Optional

import gevent
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

# Local imports
from mynet import mnist_loader
from mynet.errors import NetworkError, UnknownKindError
from mynet.models import build_network, create_model
from mynet.network import arg_max
from mynet.trainer import Trainer

# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging() -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    is_production = os.getenv('FLASK_ENV') == 'production'

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        logging.getLogger('mynet').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})

is_production = os.getenv('FLASK_ENV') == 'production'

socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode='gevent',
    logger=not is_production,
    engineio_logger=not is_production,
    ping_timeout=60,
    ping_interval=25
)

DEFAULT_LEARNING_RATE = float(os.getenv('MYNET_LEARNING_RATE', '0.1'))

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Networks currently loaded in memory: {network_id: network_info}
active_networks: Dict[str, Dict[str, Any]] = {}

# Training jobs being tracked: {job_id: job_info}
training_jobs: Dict[str, Dict[str, Any]] = {}

# MNIST dataset, loaded on first use
dataset: Optional[mnist_loader.Dataset] = None


# ============================================================================
# DATA LOADING
# ============================================================================

def get_dataset() -> Optional[mnist_loader.Dataset]:
    """
    Return the MNIST dataset, loading it on first call.

    Returns None if the archive is missing so the rest of the API (creating
    networks, predicting) keeps working without data.
    """
    global dataset

    if dataset is None:
        logger.info("Loading MNIST data...")
        try:
            dataset = mnist_loader.load_data()
        except FileNotFoundError as e:
            logger.warning(f"MNIST data unavailable: {e}")
            return None
    return dataset


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """
    Return server status and statistics.

    Counts only training jobs that are pending or in progress.
    """
    active_statuses = ('pending', 'training')
    active_training = sum(
        1 for job in training_jobs.values()
        if job.get('status') in active_statuses
    )

    return jsonify({
        'status': 'online',
        'active_networks': len(active_networks),
        'training_jobs': active_training,
        'data_loaded': dataset is not None
    }), 200


@app.route('/api/networks', methods=['POST'])
def create_network():
    """
    Create a new network.

    Request body (optional):
        {'model_type': 'MyNet'}                  # default
        {'layer_sizes': [784, 42, 10]}           # custom dense stack
        {'learning_rate': 0.1}                   # either form

    Returns:
        JSON with network_id, architecture, learning_rate and status
    """
    data = request.get_json(silent=True) or {}
    learning_rate = data.get('learning_rate', DEFAULT_LEARNING_RATE)

    if not is_number(learning_rate) or learning_rate <= 0:
        return jsonify({'error': 'learning_rate must be a positive number'}), 400

    layer_sizes = data.get('layer_sizes')
    model_type = data.get('model_type', 'MyNet')

    if layer_sizes is not None and (
        not isinstance(layer_sizes, list) or len(layer_sizes) < 2
        or not all(is_positive_int(size) for size in layer_sizes)
    ):
        logger.warning(f"Invalid architecture requested: {layer_sizes}")
        return jsonify({
            'error': 'Invalid architecture. Must have at least 2 positive layer sizes.'
        }), 400

    try:
        if layer_sizes is not None:
            net = build_network(layer_sizes, learning_rate=learning_rate)
            model_type = 'custom'
        else:
            net = create_model(model_type, learning_rate=learning_rate)
    except UnknownKindError as e:
        logger.warning(f"Unknown model type requested: {model_type}")
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception(f"Error creating network: {e}")
        return jsonify({'error': f'Failed to create network: {str(e)}'}), 500

    network_id = str(uuid.uuid4())
    active_networks[network_id] = {
        'network': net,
        'model_type': model_type,
        'architecture': net.layer_node_counts,
        'trained': False,
        'accuracy': None,
        'history': None
    }

    logger.info(f"Created network {network_id} with architecture {net.layer_node_counts}")

    return jsonify({
        'network_id': network_id,
        'model_type': model_type,
        'architecture': net.layer_node_counts,
        'learning_rate': net.learning_rate,
        'status': 'created'
    }), 201


@app.route('/api/networks', methods=['GET'])
def list_networks():
    """List all networks held in memory."""
    networks = [
        {
            'network_id': nid,
            'model_type': info['model_type'],
            'architecture': info['architecture'],
            'trained': info['trained'],
            'accuracy': info['accuracy']
        }
        for nid, info in active_networks.items()
    ]
    logger.debug(f"Listing networks: {len(networks)} in memory")
    return jsonify({'networks': networks}), 200


@app.route('/api/networks/<network_id>', methods=['DELETE'])
def delete_network_endpoint(network_id: str):
    """Remove a network from memory."""
    if network_id not in active_networks:
        logger.warning(f"Delete attempted for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    del active_networks[network_id]
    logger.info(f"Deleted network {network_id}")
    return jsonify({'network_id': network_id, 'deleted': True}), 200


@app.route('/api/networks', methods=['DELETE'])
def delete_all_networks():
    """Remove every network from memory."""
    deleted_count = len(active_networks)
    active_networks.clear()
    logger.info(f"Deleted all networks: {deleted_count} total")
    return jsonify({
        'deleted_count': deleted_count,
        'message': f'Successfully deleted {deleted_count} network(s)'
    }), 200


@app.route('/api/networks/<network_id>/train', methods=['POST'])
def train_network(network_id: str):
    """
    Start training a network in the background.

    Request body (all optional):
        {
            'epochs': 1,
            'batch_size': 320,
            'limit': 1000      # train on the first N examples only
        }

    Returns:
        JSON with job_id, network_id, and status
    """
    if network_id not in active_networks:
        logger.warning(f"Training requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    epochs = data.get('epochs', 1)
    batch_size = data.get('batch_size', 320)
    limit = data.get('limit')

    if not is_positive_int(epochs):
        return jsonify({'error': 'epochs must be a positive integer'}), 400
    if not is_positive_int(batch_size):
        return jsonify({'error': 'batch_size must be a positive integer'}), 400
    if limit is not None and not is_positive_int(limit):
        return jsonify({'error': 'limit must be a positive integer'}), 400

    if get_dataset() is None:
        return jsonify({'error': 'Training data not available'}), 503

    job_id = str(uuid.uuid4())
    training_jobs[job_id] = {
        'network_id': network_id,
        'status': 'pending',
        'progress': 0,
        'epochs': epochs
    }

    logger.info(
        f"Created training job {job_id} for network {network_id}: "
        f"epochs={epochs}, batch_size={batch_size}, limit={limit}"
    )

    socketio.start_background_task(
        train_network_task,
        network_id, job_id, epochs, batch_size, limit
    )

    return jsonify({
        'job_id': job_id,
        'network_id': network_id,
        'status': 'training_started'
    }), 202


def train_network_task(
    network_id: str,
    job_id: str,
    epochs: int,
    batch_size: int,
    limit: Optional[int] = None
) -> None:
    """
    Background task that trains a network.

    Sends a progress update via WebSocket after every batch and yields to
    gevent so HTTP requests are served while training runs.
    """
    net = active_networks[network_id]['network']
    data = get_dataset()

    def on_batch_end(batch: int, logs: Dict[str, Any]) -> None:
        training_jobs[job_id]['status'] = 'training'
        training_jobs[job_id]['progress'] = logs['progress']

        socketio.emit('training_update', {
            'job_id': job_id,
            'network_id': network_id,
            'batch': batch,
            'epoch': logs['epoch'],
            'loss': logs['loss'],
            'progress': logs['progress']
        })

    def yield_to_other_tasks() -> None:
        gevent.sleep(0)

    try:
        if data is None:
            raise RuntimeError('Training data not available')

        images, labels = data.train
        test_images, test_labels = data.test
        if limit is not None:
            images, labels = images[:limit], labels[:limit]

        logger.info(f"Starting training for job {job_id}")

        trainer = Trainer(
            net,
            batch_size=batch_size,
            epochs=epochs,
            on_batch_end=on_batch_end,
            yield_func=yield_to_other_tasks
        )
        history = trainer.train(images, labels)

        accuracy = net.evaluate(test_images, test_labels)

        if network_id not in active_networks:
            logger.warning(f"Network {network_id} was deleted during training job {job_id}")
            training_jobs[job_id]['status'] = 'failed'
            training_jobs[job_id]['error'] = 'Network was deleted during training'
            socketio.emit('training_error', {
                'job_id': job_id,
                'network_id': network_id,
                'status': 'failed',
                'error': training_jobs[job_id]['error']
            })
            gevent.sleep(0)
            return

        active_networks[network_id]['trained'] = True
        active_networks[network_id]['accuracy'] = accuracy
        active_networks[network_id]['history'] = history

        training_jobs[job_id]['status'] = 'completed'
        training_jobs[job_id]['accuracy'] = accuracy
        training_jobs[job_id]['progress'] = 100

        logger.info(f"Training completed for job {job_id}: accuracy {accuracy:.2%}")

        socketio.emit('training_complete', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'completed',
            'accuracy': float(accuracy),
            'progress': 100
        })
        gevent.sleep(0)

    except Exception as e:
        logger.exception(f"Training failed for job {job_id}: {e}")

        training_jobs[job_id]['status'] = 'failed'
        training_jobs[job_id]['error'] = str(e)

        socketio.emit('training_error', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'failed',
            'error': str(e)
        })
        gevent.sleep(0)


@app.route('/api/training/<job_id>', methods=['GET'])
def get_training_status(job_id: str):
    """Get the current status of a training job."""
    if job_id in training_jobs:
        return jsonify(training_jobs[job_id]), 200

    logger.warning(f"Status requested for non-existent job: {job_id}")
    return jsonify({'error': 'Training job not found'}), 404


@app.route('/api/networks/<network_id>/predict', methods=['POST'])
def predict(network_id: str):
    """
    Run a forward pass on one feature vector.

    Request body:
        {'input': [0.0, 0.5, ...]}   # length = network input size

    Returns:
        JSON with the raw output vector and the predicted class
    """
    if network_id not in active_networks:
        logger.warning(f"Prediction requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    features = data.get('input')
    if not isinstance(features, list) or not all(
        is_number(value) for value in features
    ):
        return jsonify({'error': 'input must be a list of numbers'}), 400

    net = active_networks[network_id]['network']
    try:
        output = net.predict(features)
    except NetworkError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'network_id': network_id,
        'network_output': array_to_float_list(output),
        'predicted_digit': arg_max(output)
    }), 200


@app.route('/api/networks/<network_id>/evaluate', methods=['POST'])
def evaluate_network(network_id: str):
    """
    Measure accuracy on the MNIST test split.

    Request body (optional):
        {'limit': 1000}   # evaluate on the first N test examples only
    """
    if network_id not in active_networks:
        logger.warning(f"Evaluation requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    limit = data.get('limit')
    if limit is not None and not is_positive_int(limit):
        return jsonify({'error': 'limit must be a positive integer'}), 400

    loaded = get_dataset()
    if loaded is None:
        logger.error("Test data not loaded")
        return jsonify({'error': 'Test data not available'}), 503

    images, labels = loaded.test
    if limit is not None:
        images, labels = images[:limit], labels[:limit]

    net = active_networks[network_id]['network']
    try:
        accuracy = net.evaluate(images, labels)
    except NetworkError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'network_id': network_id,
        'accuracy': accuracy,
        'examples': len(images)
    }), 200


@app.route('/api/networks/<network_id>/loss_chart', methods=['GET'])
def get_loss_chart(network_id: str):
    """Return the per-batch training loss curve as a base64 PNG."""
    if network_id not in active_networks:
        logger.warning(f"Loss chart requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    history = active_networks[network_id].get('history')
    if history is None or not history.batch_losses:
        return jsonify({'error': 'Network has no training history'}), 404

    return jsonify({
        'network_id': network_id,
        'batch_losses': history.batch_losses,
        'image_data': create_loss_chart(history.batch_losses)
    }), 200


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def is_number(value: Any) -> bool:
    """True for JSON numbers; booleans are rejected even though bool is an int."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_positive_int(value: Any) -> bool:
    """True for integers >= 1, excluding booleans."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def array_to_float_list(values) -> List[float]:
    """Convert a sequence of numbers to a list of floats (for JSON serialization)."""
    return [float(val) for val in values]


def create_loss_chart(losses: List[float]) -> str:
    """
    Create a base64-encoded PNG line chart of batch losses.

    Args:
        losses: Mean absolute error per batch, in training order

    Returns:
        Base64-encoded PNG image string
    """
    plt.figure(figsize=(6, 3))
    plt.plot(range(1, len(losses) + 1), losses, color='tab:red')
    plt.title('Batch Loss')
    plt.xlabel('Batch')
    plt.ylabel('Mean absolute error')
    plt.ylim(bottom=0)

    buffer = BytesIO()
    plt.savefig(buffer, format='png', bbox_inches='tight')
    buffer.seek(0)
    img_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')
    plt.close()

    return img_base64


# ============================================================================
# SERVER STARTUP
# ============================================================================

if __name__ == '__main__':
    is_cloud = bool(os.environ.get('PORT'))
    port = int(os.environ.get('PORT', 8000))

    if is_cloud:
        logger.info(f"Starting server in production mode on port {port}")
    else:
        logger.info(f"Starting server at http://localhost:{port}/")

    try:
        socketio.run(
            app,
            host='0.0.0.0',
            port=port,
            debug=not is_cloud,
            use_reloader=False,
            allow_unsafe_werkzeug=True
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        else:
            raise
