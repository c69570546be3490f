"""AWS guardrails: public buckets, open ingress, unencrypted databases, wildcard IAM."""

from __future__ import annotations

import json
from typing import List

from ..model import MapValue, Severity, UnresolvedRef
from . import register
from .base import Rule, as_bool, as_str, as_str_list, attr, blocks

OPEN_CIDRS = {"0.0.0.0/0", "::/0"}
PUBLIC_ACLS = {"public-read", "public-read-write"}


@register
class S3PublicAclRule(Rule):
    id = "IAC-AWS-001"
    title = "S3 bucket ACL allows public reads"
    severity = Severity.HIGH
    resource_types = frozenset({"aws_s3_bucket", "aws_s3_bucket_acl"})

    @classmethod
    def evaluate(cls, node, context):
        acl = as_str(node.attribute("acl"))
        if acl is not None and acl.lower() in PUBLIC_ACLS:
            return [cls.finding(node, f"{node.address} uses canned ACL {acl}")]
        return []


@register
class SecurityGroupOpenIngressRule(Rule):
    id = "IAC-AWS-002"
    title = "Security group ingress allows 0.0.0.0/0 or ::/0"
    severity = Severity.HIGH
    resource_types = frozenset({"aws_security_group", "aws_security_group_rule", "aws_vpc_security_group_ingress_rule"})

    @classmethod
    def evaluate(cls, node, context):
        if node.resource_type == "aws_security_group":
            candidates = blocks(node.attribute("ingress"))
        elif node.resource_type == "aws_security_group_rule":
            if (as_str(node.attribute("type")) or "").lower() != "ingress":
                return []
            candidates = [node]
        else:
            candidates = [node]
        for candidate in candidates:
            cidrs = as_str_list(attr(candidate, "cidr_blocks"))
            cidrs += as_str_list(attr(candidate, "ipv6_cidr_blocks"))
            cidrs += as_str_list(attr(candidate, "cidr_ipv4"))
            cidrs += as_str_list(attr(candidate, "cidr_ipv6"))
            open_cidrs = sorted(OPEN_CIDRS.intersection(cidrs))
            if open_cidrs:
                return [cls.finding(node, f"{node.address} ingress allows {', '.join(open_cidrs)}")]
        return []


@register
class DatabaseEncryptionRule(Rule):
    id = "IAC-AWS-003"
    title = "Database storage encryption disabled"
    severity = Severity.CRITICAL
    resource_types = frozenset({"aws_db_instance", "aws_rds_cluster"})

    @classmethod
    def evaluate(cls, node, context):
        value = node.attribute("storage_encrypted")
        if isinstance(value, UnresolvedRef):
            return []
        if as_bool(value) is not True:
            return [cls.finding(node, f"{node.address} has storage_encrypted != true")]
        return []


@register
class IamWildcardActionRule(Rule):
    id = "IAC-AWS-004"
    title = "IAM policy grants wildcard actions"
    severity = Severity.CRITICAL
    resource_types = frozenset({"aws_iam_policy", "aws_iam_role_policy", "aws_iam_user_policy"})

    @classmethod
    def evaluate(cls, node, context):
        value = node.attribute("policy")
        if isinstance(value, MapValue):
            document = json.dumps(value.to_python())
        else:
            document = as_str(value)
        if not document or not document.strip():
            return []
        actions = _wildcard_actions(document)
        if actions:
            return [cls.finding(node, f"{node.address} allows wildcard actions: {', '.join(actions)}")]
        return []


def _wildcard_actions(document: str) -> List[str]:
    try:
        parsed = json.loads(document)
    except json.JSONDecodeError:
        return ["*"] if '"*"' in document else []
    statements = parsed.get("Statement") if isinstance(parsed, dict) else None
    if isinstance(statements, dict):
        statements = [statements]
    if not isinstance(statements, list):
        return []
    found: List[str] = []
    for statement in statements:
        if not isinstance(statement, dict) or statement.get("Effect", "Allow") != "Allow":
            continue
        actions = statement.get("Action")
        if isinstance(actions, str):
            actions = [actions]
        if not isinstance(actions, list):
            continue
        for action in actions:
            if isinstance(action, str) and "*" in action and action not in found:
                found.append(action)
    return found
