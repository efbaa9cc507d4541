import functools
import logging
import sys

import pydantic

from flask import Flask, request, jsonify, current_app
from werkzeug.exceptions import BadRequest

from models import (
    BaseModel,
    AdmissionReview,
    AdmissionResponse,
    AdmissionReviewStatus,
    GroupVersionResource,
    MutatorConfig,
)

from deadline import Deadline
from engine import PodMutator
from providers import KubernetesProvider
from exc import ApplicationError, DecodeError

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


class DEFAULTS:
    HOSTNAME_KEY = "kubernetes.io/hostname"
    LABEL_NAME = "middleware"
    LABEL_VALUE = "redis"
    CLAIM_SUFFIX = "-replica"
    POD_RESOURCE_GROUP = ""
    POD_RESOURCE_VERSION = "v1"
    POD_RESOURCE_NAME = "pods"

    # Used when the API server does not send a timeout with the request. This
    # is the default webhook timeout.
    DEFAULT_TIMEOUT = 10
    TIMEOUT_MARGIN = 1

    PROVIDER = KubernetesProvider

    LISTEN_HOST = "0.0.0.0"
    LISTEN_PORT = 8443
    TLS_CERT_FILE = "/certs/tls.crt"
    TLS_KEY_FILE = "/certs/tls.key"


def jsonresponse():
    """Transforms the response from a view function into a JSON object."""

    def _outer(func):
        @functools.wraps(func)
        def _inner(*args, **kwargs):
            res = func(*args, **kwargs)
            if isinstance(res, BaseModel):
                return jsonify(res.model_dump(mode="json", exclude_none=True))
            else:
                return jsonify(res)

        return _inner

    return _outer


@jsonresponse()
def mutate_pod():
    body = AdmissionReview.model_validate(request.get_json())
    if body.request is None:
        raise BadRequest("admission review contains no request")

    deadline = Deadline.from_timeout(
        request.args.get("timeout"),
        default=current_app.config["DEFAULT_TIMEOUT"],
        margin=current_app.config["TIMEOUT_MARGIN"],
    )

    try:
        patch = current_app.mutator.decide(body.request, deadline=deadline)
    except DecodeError as err:
        LOG.error("rejecting admission %s: %s", body.request.uid, err)
        return AdmissionReview(
            apiVersion=body.apiVersion,
            response=AdmissionResponse(
                allowed=False,
                uid=body.request.uid,
                status=AdmissionReviewStatus(message=str(err), code=400),
            ),
        )

    # Nothing to change (not a pod, not managed, or already in shape)
    if not patch.root:
        return AdmissionReview(
            apiVersion=body.apiVersion,
            response=AdmissionResponse(
                allowed=True,
                uid=body.request.uid,
                status=AdmissionReviewStatus(message="No changes"),
            ),
        )

    return AdmissionReview(
        apiVersion=body.apiVersion,
        response=AdmissionResponse(
            uid=body.request.uid,
            allowed=True,
            patchType="JSONPatch",
            patch=patch,
        ),
    )


def handle_validationerror(err):
    return str(err), 400, {"content-type": "text/plain"}


def handle_applicationerror(err):
    return str(err), 500, {"content-type": "text/plain"}


def health():
    return "OK", 200, {"content-type": "text/plain"}


def mutator_config(config) -> MutatorConfig:
    return MutatorConfig(
        target_node=str(config["TARGET_NODE"]),
        hostname_key=str(config["HOSTNAME_KEY"]),
        label_name=str(config["LABEL_NAME"]),
        label_value=str(config["LABEL_VALUE"]),
        claim_suffix=str(config["CLAIM_SUFFIX"]),
        pod_resource=GroupVersionResource(
            group=str(config["POD_RESOURCE_GROUP"]),
            version=str(config["POD_RESOURCE_VERSION"]),
            resource=str(config["POD_RESOURCE_NAME"]),
        ),
    )


def create_app(**config) -> Flask:
    """Use an application factory [1] to create the Flask app.

    This makes it much easier to write tests for the application, since we can
    set up the test environment before instantiating the app. This is difficult
    to do if the app is created at `import` time.

    The provider is created once here and shared by all requests.

    [1]: https://flask.palletsprojects.com/en/3.0.x/patterns/appfactories/
    """

    app = Flask(__name__)
    app.config.from_object(DEFAULTS)
    app.config.from_prefixed_env("MUTATOR")
    if config:
        app.config.update(config)

    if not app.config.get("TARGET_NODE"):
        LOG.error("Missing target node configuration")
        sys.exit(1)

    app.provider = app.config["PROVIDER"]()
    app.mutator = PodMutator(app.provider, mutator_config(app.config))

    app.errorhandler(pydantic.ValidationError)(handle_validationerror)
    app.errorhandler(ApplicationError)(handle_applicationerror)
    app.add_url_rule("/healthz", view_func=health)
    app.add_url_rule("/mutate", view_func=mutate_pod, methods=["POST"])

    return app


def main():
    app = create_app()
    app.run(
        host=app.config["LISTEN_HOST"],
        port=app.config["LISTEN_PORT"],
        ssl_context=(app.config["TLS_CERT_FILE"], app.config["TLS_KEY_FILE"]),
    )


if __name__ == "__main__":
    main()
