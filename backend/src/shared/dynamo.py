"""
DynamoDB storage for the marketplace entities.

MarketplaceStore is the single storage handle of a process. It is built once
at cold start (see runtime.py) and passed explicitly into the service
functions. Single-row invariants are enforced with condition expressions
(compare-and-set on `nonce` or `status`), multi-row cascades with
transact_write_items.
"""
from typing import Any, Dict, Iterable, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from .config import config
from .logging import logger
from .models import ApplicationStatus, RoleStatus

# DynamoDB rejects transactions with more than 100 actions
MAX_TRANSACTION_ITEMS = 100

CONDITION_FAILURES = ('ConditionalCheckFailedException', 'TransactionCanceledException')

_serializer = TypeSerializer()


def _compact(item: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None values; index key attributes must be absent rather than NULL."""
    return {k: v for k, v in item.items() if v is not None}


def _to_wire(item: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a plain item into the low-level attribute-value format."""
    return {k: _serializer.serialize(v) for k, v in _compact(item).items()}


def _is_condition_failure(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') in CONDITION_FAILURES


class MarketplaceStore:
    """Persistence for users, projects, roles, applications, assignments, KPIs and transactions."""

    def __init__(self, dynamodb, cfg=config):
        self.dynamodb = dynamodb
        self.client = dynamodb.meta.client
        self.table_names = {
            'users': cfg.USERS_TABLE,
            'projects': cfg.PROJECTS_TABLE,
            'roles': cfg.ROLES_TABLE,
            'applications': cfg.APPLICATIONS_TABLE,
            'assignments': cfg.ASSIGNMENTS_TABLE,
            'kpis': cfg.KPIS_TABLE,
            'transactions': cfg.TRANSACTIONS_TABLE,
        }
        self.users = dynamodb.Table(cfg.USERS_TABLE)
        self.projects = dynamodb.Table(cfg.PROJECTS_TABLE)
        self.roles = dynamodb.Table(cfg.ROLES_TABLE)
        self.applications = dynamodb.Table(cfg.APPLICATIONS_TABLE)
        self.assignments = dynamodb.Table(cfg.ASSIGNMENTS_TABLE)
        self.kpis = dynamodb.Table(cfg.KPIS_TABLE)
        self.transactions = dynamodb.Table(cfg.TRANSACTIONS_TABLE)

    @classmethod
    def from_config(cls, cfg=config) -> 'MarketplaceStore':
        return cls(boto3.resource('dynamodb', region_name=cfg.AWS_REGION), cfg)

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------

    def _get(self, table, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = table.get_item(Key=key)
        return response.get('Item')

    def _query_all(self, table, index_name: str, key_condition) -> List[Dict[str, Any]]:
        """Query an index, following LastEvaluatedKey pagination."""
        params = {'IndexName': index_name, 'KeyConditionExpression': key_condition}
        items = []
        while True:
            response = table.query(**params)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            params['ExclusiveStartKey'] = last_key

    def _scan_all(self, table, filter_expression=None) -> List[Dict[str, Any]]:
        params = {}
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression
        items = []
        while True:
            response = table.scan(**params)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            params['ExclusiveStartKey'] = last_key

    def _update(
        self,
        table,
        key: Dict[str, Any],
        fields: Dict[str, Any],
        condition=None,
        remove: Iterable[str] = ()
    ) -> Optional[Dict[str, Any]]:
        """
        Update attributes of one item.

        Args:
            table: boto3 Table resource
            key: Primary key of the item
            fields: Attributes to SET
            condition: Optional boto3 condition; the item must also exist
            remove: Attributes to REMOVE

        Returns:
            The updated item, or None if the condition did not hold
        """
        names = {}
        values = {}
        clauses = []
        for i, (name, value) in enumerate(fields.items()):
            names[f'#fld{i}'] = name
            values[f':val{i}'] = value
            clauses.append(f'#fld{i} = :val{i}')
        expression = 'SET ' + ', '.join(clauses) if clauses else ''

        removed = []
        for i, name in enumerate(remove):
            names[f'#rm{i}'] = name
            removed.append(f'#rm{i}')
        if removed:
            expression = f"{expression} REMOVE {', '.join(removed)}".strip()

        key_name = next(iter(key))
        exists = Attr(key_name).exists()
        params = {
            'Key': key,
            'UpdateExpression': expression,
            'ExpressionAttributeNames': names,
            'ConditionExpression': exists & condition if condition is not None else exists,
            'ReturnValues': 'ALL_NEW',
        }
        if values:
            params['ExpressionAttributeValues'] = values

        try:
            return table.update_item(**params).get('Attributes')
        except ClientError as e:
            if _is_condition_failure(e):
                return None
            raise

    def _transact(self, actions: List[Dict[str, Any]]) -> bool:
        """Run a write transaction. Returns False when any condition was not met."""
        if len(actions) > MAX_TRANSACTION_ITEMS:
            raise ValueError(f'Transaction has {len(actions)} actions, limit is {MAX_TRANSACTION_ITEMS}')
        try:
            self.client.transact_write_items(TransactItems=actions)
            return True
        except ClientError as e:
            if _is_condition_failure(e):
                reasons = e.response.get('CancellationReasons', [])
                logger.info(f"Transaction cancelled: {[r.get('Code') for r in reasons]}")
                return False
            raise

    def _delete_all(self, table, key_name: str, items: List[Dict[str, Any]]) -> None:
        with table.batch_writer() as batch:
            for item in items:
                batch.delete_item(Key={key_name: item[key_name]})

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, address: str) -> Optional[Dict[str, Any]]:
        return self._get(self.users, {'address': address})

    def save_nonce(self, address: str, nonce: str, timestamp: int, now: str) -> None:
        """Create the user if absent, or overwrite its pending challenge."""
        self.users.update_item(
            Key={'address': address},
            UpdateExpression=(
                'SET #nonce = :nonce, #ts = :ts, #updated = :now, '
                '#created = if_not_exists(#created, :now)'
            ),
            ExpressionAttributeNames={
                '#nonce': 'nonce',
                '#ts': 'nonceTimestamp',
                '#updated': 'updatedAt',
                '#created': 'createdAt',
            },
            ExpressionAttributeValues={
                ':nonce': nonce,
                ':ts': timestamp,
                ':now': now,
            }
        )

    def rotate_nonce(self, address: str, expected_nonce: str, nonce: str, timestamp: int, now: str) -> bool:
        """Replace the stored nonce only if it still equals `expected_nonce`."""
        updated = self._update(
            self.users,
            {'address': address},
            {'nonce': nonce, 'nonceTimestamp': timestamp, 'updatedAt': now},
            condition=Attr('nonce').eq(expected_nonce)
        )
        return updated is not None

    def update_user(self, address: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._update(self.users, {'address': address}, fields)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def put_project(self, item: Dict[str, Any]) -> None:
        self.projects.put_item(Item=_compact(item))

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.projects, {'projectId': project_id})

    def scan_projects(self) -> List[Dict[str, Any]]:
        return self._scan_all(self.projects)

    def list_projects_by_owner(self, owner_address: str) -> List[Dict[str, Any]]:
        return self._query_all(self.projects, 'OwnerIndex', Key('ownerAddress').eq(owner_address))

    def update_project(
        self,
        project_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        condition = Attr('status').eq(expected_status) if expected_status else None
        return self._update(self.projects, {'projectId': project_id}, fields, condition=condition)

    def set_total_deposited(self, project_id: str, expected_total: str, total: str, now: str) -> bool:
        """Compare-and-set totalDeposited; amounts are strings, so ADD cannot be used."""
        updated = self._update(
            self.projects,
            {'projectId': project_id},
            {'totalDeposited': total, 'updatedAt': now},
            condition=Attr('totalDeposited').eq(expected_total)
        )
        return updated is not None

    def delete_project(self, project_id: str, expected_status: str) -> bool:
        """Delete a project in `expected_status` and everything beneath it."""
        try:
            self.projects.delete_item(
                Key={'projectId': project_id},
                ConditionExpression=Attr('status').eq(expected_status)
            )
        except ClientError as e:
            if _is_condition_failure(e):
                return False
            raise

        for role in self.list_roles(project_id):
            self.delete_role(role['roleId'])
        logger.info(f"Deleted project {project_id} with its roles")
        return True

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def put_role(self, item: Dict[str, Any]) -> None:
        self.roles.put_item(Item=_compact(item))

    def get_role(self, role_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.roles, {'roleId': role_id})

    def list_roles(self, project_id: str) -> List[Dict[str, Any]]:
        return self._query_all(self.roles, 'ProjectIndex', Key('projectId').eq(project_id))

    def update_role(
        self,
        role_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        condition = Attr('status').eq(expected_status) if expected_status else None
        return self._update(self.roles, {'roleId': role_id}, fields, condition=condition)

    def delete_role(self, role_id: str) -> None:
        """Delete a role with its applications, assignments and KPIs."""
        for assignment in self.list_assignments_by_role(role_id):
            self.delete_assignment(assignment['assignmentId'])
        self._delete_all(self.kpis, 'kpiId', self.list_kpis_by_role(role_id))
        self._delete_all(self.applications, 'applicationId', self.list_applications_by_role(role_id))
        self.roles.delete_item(Key={'roleId': role_id})

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def create_application(self, item: Dict[str, Any]) -> bool:
        """
        Put an application record.

        One record exists per (role, freelancer) pair; it can only be
        replaced once the previous application was withdrawn.
        """
        try:
            self.applications.put_item(
                Item=_compact(item),
                ConditionExpression=(
                    Attr('applicationId').not_exists()
                    | Attr('status').eq(ApplicationStatus.WITHDRAWN)
                )
            )
            return True
        except ClientError as e:
            if _is_condition_failure(e):
                return False
            raise

    def get_application(self, application_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.applications, {'applicationId': application_id})

    def list_applications_by_role(self, role_id: str) -> List[Dict[str, Any]]:
        return self._query_all(self.applications, 'RoleIndex', Key('projectRoleId').eq(role_id))

    def list_applications_by_freelancer(self, address: str) -> List[Dict[str, Any]]:
        return self._query_all(self.applications, 'FreelancerIndex', Key('freelancerAddress').eq(address))

    def set_application_status(self, application_id: str, expected: str, status: str, now: str) -> bool:
        updated = self._update(
            self.applications,
            {'applicationId': application_id},
            {'status': status, 'updatedAt': now},
            condition=Attr('status').eq(expected)
        )
        return updated is not None

    def accept_application(
        self,
        application: Dict[str, Any],
        assignment: Dict[str, Any],
        kpi_ids: List[str],
        sibling_ids: List[str],
        now: str
    ) -> bool:
        """
        Accept an application in one transaction.

        The role must still be open and the application still pending. The
        transaction creates the assignment, links the role's KPIs to it,
        rejects the given pending sibling applications and marks the role
        assigned.

        The role must also still agree with `kpi_ids` on whether its KPIs
        exist, so KPIs created after they were listed cancel the accept
        instead of being left unlinked.

        Returns:
            False if any condition failed (nothing was written)
        """
        names = {'#status': 'status', '#updated': 'updatedAt'}
        role_values = {
            ':open': {'S': RoleStatus.OPEN},
            ':assigned': {'S': RoleStatus.ASSIGNED},
        }
        if kpi_ids:
            role_condition = '#status = :open AND kpisCreated = :true'
            role_values[':true'] = {'BOOL': True}
        else:
            role_condition = '#status = :open AND attribute_not_exists(kpisCreated)'

        actions = [
            {
                'Update': {
                    'TableName': self.table_names['roles'],
                    'Key': {'roleId': {'S': application['projectRoleId']}},
                    'UpdateExpression': 'SET #status = :assigned',
                    'ConditionExpression': role_condition,
                    'ExpressionAttributeNames': {'#status': 'status'},
                    'ExpressionAttributeValues': role_values,
                }
            },
            {
                'Update': {
                    'TableName': self.table_names['applications'],
                    'Key': {'applicationId': {'S': application['applicationId']}},
                    'UpdateExpression': 'SET #status = :accepted, #updated = :now',
                    'ConditionExpression': '#status = :pending',
                    'ExpressionAttributeNames': names,
                    'ExpressionAttributeValues': {
                        ':pending': {'S': ApplicationStatus.PENDING},
                        ':accepted': {'S': ApplicationStatus.ACCEPTED},
                        ':now': {'S': now},
                    }
                }
            },
            {
                'Put': {
                    'TableName': self.table_names['assignments'],
                    'Item': _to_wire(assignment),
                    'ConditionExpression': 'attribute_not_exists(assignmentId)'
                }
            },
        ]

        for kpi_id in kpi_ids:
            actions.append({
                'Update': {
                    'TableName': self.table_names['kpis'],
                    'Key': {'kpiId': {'S': kpi_id}},
                    'UpdateExpression': 'SET assignmentId = :aid, #updated = :now',
                    'ConditionExpression': 'attribute_exists(kpiId)',
                    'ExpressionAttributeNames': {'#updated': 'updatedAt'},
                    'ExpressionAttributeValues': {
                        ':aid': {'S': assignment['assignmentId']},
                        ':now': {'S': now},
                    }
                }
            })

        for sibling_id in sibling_ids:
            actions.append({
                'Update': {
                    'TableName': self.table_names['applications'],
                    'Key': {'applicationId': {'S': sibling_id}},
                    'UpdateExpression': 'SET #status = :rejected, #updated = :now',
                    'ConditionExpression': '#status = :pending',
                    'ExpressionAttributeNames': names,
                    'ExpressionAttributeValues': {
                        ':pending': {'S': ApplicationStatus.PENDING},
                        ':rejected': {'S': ApplicationStatus.REJECTED},
                        ':now': {'S': now},
                    }
                }
            })

        return self._transact(actions)

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def get_assignment(self, assignment_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.assignments, {'assignmentId': assignment_id})

    def list_assignments_by_role(self, role_id: str) -> List[Dict[str, Any]]:
        return self._query_all(self.assignments, 'RoleIndex', Key('projectRoleId').eq(role_id))

    def list_assignments_by_freelancer(self, address: str) -> List[Dict[str, Any]]:
        return self._query_all(self.assignments, 'FreelancerIndex', Key('freelancerAddress').eq(address))

    def set_assignment_status(self, assignment_id: str, expected: str, status: str) -> bool:
        updated = self._update(
            self.assignments,
            {'assignmentId': assignment_id},
            {'status': status},
            condition=Attr('status').eq(expected)
        )
        return updated is not None

    def delete_assignment(self, assignment_id: str) -> None:
        """Delete an assignment, clearing the back-reference on its KPIs first."""
        for kpi in self.list_kpis_by_assignment(assignment_id):
            self._update(self.kpis, {'kpiId': kpi['kpiId']}, {}, remove=['assignmentId'])
        self.assignments.delete_item(Key={'assignmentId': assignment_id})

    # ------------------------------------------------------------------
    # KPIs
    # ------------------------------------------------------------------

    def create_kpis(self, role_id: str, items: List[Dict[str, Any]], expected_status: str) -> bool:
        """
        Create all KPIs of a role at once.

        Fails if the role already has KPIs or its status is no longer
        `expected_status` (an application was accepted since it was read).
        """
        actions = [
            {
                'Update': {
                    'TableName': self.table_names['roles'],
                    'Key': {'roleId': {'S': role_id}},
                    'UpdateExpression': 'SET kpisCreated = :true',
                    'ConditionExpression': (
                        'attribute_exists(roleId) AND attribute_not_exists(kpisCreated) '
                        'AND #status = :expected'
                    ),
                    'ExpressionAttributeNames': {'#status': 'status'},
                    'ExpressionAttributeValues': {
                        ':true': {'BOOL': True},
                        ':expected': {'S': expected_status},
                    }
                }
            }
        ]
        for item in items:
            actions.append({
                'Put': {
                    'TableName': self.table_names['kpis'],
                    'Item': _to_wire(item),
                    'ConditionExpression': 'attribute_not_exists(kpiId)'
                }
            })
        return self._transact(actions)

    def get_kpi(self, kpi_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.kpis, {'kpiId': kpi_id})

    def list_kpis_by_role(self, role_id: str) -> List[Dict[str, Any]]:
        return self._query_all(self.kpis, 'RoleIndex', Key('projectRoleId').eq(role_id))

    def list_kpis_by_assignment(self, assignment_id: str) -> List[Dict[str, Any]]:
        return self._query_all(self.kpis, 'AssignmentIndex', Key('assignmentId').eq(assignment_id))

    def update_kpi(
        self,
        kpi_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None,
        absent: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Update a KPI, optionally only while it is still in `expected_status`
        and, if `absent` is given, while that attribute is not set yet.
        """
        condition = Attr('status').eq(expected_status) if expected_status else None
        if absent:
            missing = Attr(absent).not_exists()
            condition = condition & missing if condition is not None else missing
        return self._update(self.kpis, {'kpiId': kpi_id}, fields, condition=condition)

    # ------------------------------------------------------------------
    # Transactions (audit trail)
    # ------------------------------------------------------------------

    def put_transaction(self, item: Dict[str, Any]) -> None:
        self.transactions.put_item(
            Item=_compact(item),
            ConditionExpression=Attr('transactionId').not_exists()
        )

    def get_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        return self._get(self.transactions, {'transactionId': transaction_id})

    def list_transactions_by_project(self, project_id: str) -> List[Dict[str, Any]]:
        return self._query_all(self.transactions, 'ProjectIndex', Key('projectId').eq(project_id))

    def update_transaction(
        self,
        transaction_id: str,
        fields: Dict[str, Any],
        expected_status: str
    ) -> Optional[Dict[str, Any]]:
        return self._update(
            self.transactions,
            {'transactionId': transaction_id},
            fields,
            condition=Attr('status').eq(expected_status)
        )
