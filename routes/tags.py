"""Tag catalogue blueprint."""
from flask import Blueprint, jsonify
from flask_login import current_user

from utils import tags
from utils.activity import log_activity
from utils.decorators import admin_required
from utils.forms import json_body

tags_bp = Blueprint("tags", __name__)


@tags_bp.route("", methods=["GET"])
def list_tags():
    return jsonify([tag.public_payload() for tag in tags.list_tags()])


@tags_bp.route("", methods=["POST"])
@admin_required
def create_tag():
    tag = tags.create_tag(current_user, json_body().get("name"))
    log_activity(current_user.id, "tag_created", {"tagId": tag.id, "tagName": tag.name})
    return jsonify(tag.public_payload()), 201


@tags_bp.route("/<int:tag_id>", methods=["PUT"])
@admin_required
def rename_tag(tag_id: int):
    tag = tags.rename_tag(current_user, tag_id, json_body().get("name"))
    log_activity(current_user.id, "tag_renamed", {"tagId": tag.id, "tagName": tag.name})
    return jsonify(tag.public_payload())


@tags_bp.route("/<int:tag_id>", methods=["DELETE"])
@admin_required
def delete_tag(tag_id: int):
    tags.delete_tag(current_user, tag_id)
    log_activity(current_user.id, "tag_deleted", {"tagId": tag_id})
    return "", 204
