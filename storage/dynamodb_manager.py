"""DynamoDB manager for calendar event storage operations."""
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from event_parser.models import CalendarEvent, DeleteScope

logger = logging.getLogger(__name__)


class DynamoDBManager:
    """Manager for DynamoDB operations on calendar events."""

    BATCH_SIZE = 25  # DynamoDB batch operation limit

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def get_all_events(self) -> Dict[str, CalendarEvent]:
        """
        Retrieve all stored events using a Scan operation.

        Returns:
            Dictionary mapping event id to CalendarEvent objects
        """
        logger.info("Scanning DynamoDB table for all events")
        events = {}

        try:
            response = self.table.scan()
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

            for item in items:
                event = self._item_to_event(item)
                if event:
                    events[event.id] = event

            logger.info(f"Retrieved {len(events)} events from DynamoDB")
            return events

        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        """
        Retrieve a single event by id.

        Args:
            event_id: Id of the defining event

        Returns:
            CalendarEvent or None if it does not exist
        """
        try:
            response = self.table.get_item(Key={'event_id': event_id})
        except ClientError as e:
            logger.error(f"Error reading event {event_id}: {e}")
            raise

        item = response.get('Item')
        return self._item_to_event(item) if item else None

    def save_event(self, event: CalendarEvent) -> None:
        """
        Create or replace a single event.

        Args:
            event: CalendarEvent to store
        """
        try:
            self.table.put_item(Item=self._event_to_item(event))
            logger.info(f"Saved event {event.id}")
        except ClientError as e:
            logger.error(f"Error saving event {event.id}: {e}")
            raise

    def batch_write_events(self, events: List[CalendarEvent]) -> int:
        """
        Write events to DynamoDB in batches of 25 items.

        Args:
            events: List of CalendarEvent objects to write

        Returns:
            Count of successfully written events
        """
        if not events:
            return 0

        logger.info(f"Writing {len(events)} events to DynamoDB")
        success_count = 0

        for i in range(0, len(events), self.BATCH_SIZE):
            batch = events[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for event in batch:
                        writer.put_item(Item=self._event_to_item(event))
                        success_count += 1

            except ClientError as e:
                logger.error(
                    f"Error writing batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully wrote {success_count} events")
        return success_count

    def batch_delete_events(self, event_ids: List[str]) -> int:
        """
        Delete events from DynamoDB in batches of 25 items.

        Args:
            event_ids: List of event ids to delete

        Returns:
            Count of successfully deleted events
        """
        if not event_ids:
            return 0

        logger.info(f"Deleting {len(event_ids)} events from DynamoDB")
        success_count = 0

        for i in range(0, len(event_ids), self.BATCH_SIZE):
            batch = event_ids[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for event_id in batch:
                        writer.delete_item(Key={'event_id': event_id})
                        success_count += 1

            except ClientError as e:
                logger.error(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully deleted {success_count} events")
        return success_count

    def delete_event(
        self,
        event_id: str,
        scope: DeleteScope = DeleteScope.ALL,
        instance_start: Optional[datetime] = None
    ) -> bool:
        """
        Delete an event, or part of a recurring series.

        ``FUTURE`` ends the series just before ``instance_start``. ``THIS``
        has no exception-date storage to rely on and removes the whole
        series.

        Args:
            event_id: Id of the defining event
            scope: How much of a recurring series to delete
            instance_start: Start of the occurrence the delete was issued on

        Returns:
            True if the stored event was deleted or truncated
        """
        event = self.get_event(event_id)
        if not event:
            logger.warning(f"Event {event_id} not found, nothing to delete")
            return False

        if event.recurrence and scope is DeleteScope.FUTURE and instance_start:
            if instance_start > event.start:
                until = instance_start - timedelta(seconds=1)
                truncated = replace(
                    event,
                    recurrence=replace(event.recurrence, until=until)
                ).touch()
                self.save_event(truncated)
                logger.info(
                    f"Truncated series {event_id}",
                    extra={'until': until.isoformat()}
                )
                return True

        if event.recurrence and scope is DeleteScope.THIS:
            logger.warning(
                f"Single occurrence delete is not supported, "
                f"deleting whole series {event_id}"
            )

        try:
            self.table.delete_item(Key={'event_id': event_id})
        except ClientError as e:
            logger.error(f"Error deleting event {event_id}: {e}")
            raise

        logger.info(f"Deleted event {event_id}", extra={'scope': scope.value})
        return True

    def _item_to_event(self, item: dict) -> Optional[CalendarEvent]:
        """
        Convert DynamoDB item to CalendarEvent object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            CalendarEvent object or None if conversion fails
        """
        try:
            data = dict(item)
            data['id'] = data.pop('event_id')
            return CalendarEvent.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to convert item to CalendarEvent: {e}")
            return None

    def _event_to_item(self, event: CalendarEvent) -> dict:
        """
        Convert CalendarEvent object to DynamoDB item.

        Occurrence back-references and the derived color are not stored.

        Args:
            event: CalendarEvent object

        Returns:
            DynamoDB item dictionary
        """
        item = event.to_dict()
        item['event_id'] = item.pop('id')
        for key in ('color', 'originalEventId', 'isRecurringInstance'):
            item.pop(key, None)
        return item
