from collections.abc import Sequence
import logging
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from exporter.driver import ExportClient
from exporter.errors import BackendError
from exporter.schemas import BackendRecord

logger = logging.getLogger(__name__)


class CloudwatchClient(ExportClient):
    """Sends chunks of records with ``PutMetricData``.

    A client context is opened per call, so concurrent sends share no
    connection state.
    """

    backend = 'cloudwatch'

    def __init__(
        self,
        region_name: str,
        profile_name: str | None = None,
        endpoint_url: str | None = None,
        session: aioboto3.Session | None = None,
    ) -> None:
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self._session = session or aioboto3.Session(
            profile_name=profile_name, region_name=region_name
        )

    @staticmethod
    def to_metric_datum(record: BackendRecord) -> dict[str, Any]:
        return {
            'MetricName': record.metric_name,
            'Dimensions': [
                {'Name': name, 'Value': value} for name, value in record.dimensions
            ],
            'Value': record.numeric_value,
            'Timestamp': record.timestamp,
            'Unit': 'None',
        }

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {'region_name': self.region_name}
        if self.endpoint_url:
            kwargs['endpoint_url'] = self.endpoint_url
        return kwargs

    async def send(self, namespace: str, records: Sequence[BackendRecord]) -> None:
        metric_data = [self.to_metric_datum(record) for record in records]
        try:
            async with self._session.client(
                'cloudwatch', **self._client_kwargs()
            ) as cloudwatch:
                await cloudwatch.put_metric_data(
                    Namespace=namespace, MetricData=metric_data
                )
        except (BotoCoreError, ClientError) as e:
            raise BackendError(self.backend, str(e)) from e
        logger.debug(
            'Metric data sent to CloudWatch',
            extra={'namespace': namespace, 'datums': len(metric_data)},
        )
