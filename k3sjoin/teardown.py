"""
teardown
========

Purge the published artifacts before the store itself is destroyed.

Teardown does not wait for workers which are still joining. A worker
losing that race ends in ``TokenUnavailable`` once its retries are used
up, which is harmless since its instance is about to be deleted as well.
"""
from k3sjoin.store import StoreError
from k3sjoin.util.logger import Logger

LOGGER = Logger(__name__)


class TeardownError(Exception):
    """Raised if some objects could not be deleted.

    Attributes:
        failed (dict): object name -> error
    """

    def __init__(self, msg, failed=None):
        super().__init__(msg)
        self.failed = failed or {}


class TeardownHook:
    """
    Delete everything in a store.

    Args:
        store_factory: callable returning the
            :class:`~k3sjoin.store.SharedTokenStore` for an identifier
    """

    def __init__(self, store_factory):
        self.store_factory = store_factory

    def on_delete(self, store_identifier):
        """
        Delete every object of the store identified by store_identifier.

        All objects are attempted, an empty store is not an error.

        Returns:
            list of deleted names

        Raises:
            TeardownError if at least one object could not be deleted or
            the store can't be listed.
        """
        store = self.store_factory(store_identifier)
        LOGGER.info("Purging %s ...", store)
        try:
            deleted = store.delete_all()
        except StoreError as exc:
            raise TeardownError(
                "teardown of '%s' incomplete: %s" % (store_identifier, exc),
                failed=exc.failed)

        if deleted:
            LOGGER.success("Deleted %s from %s", ", ".join(deleted), store)
        else:
            LOGGER.info("%s is already empty", store)
        return deleted

    def handle_event(self, event):
        """
        Handle a lifecycle event of the store.

        Only ``Delete`` requests purge the store, ``Create`` and ``Update``
        succeed without doing anything. The identifier is read from
        ``ResourceProperties.StoreIdentifier`` or, for events sent for a
        bucket, ``ResourceProperties.BucketName``.

        Args:
            event (dict): the lifecycle event

        Returns:
            dict with ``Status`` (``SUCCESS`` or ``FAILED``), ``Reason``
            and ``PhysicalResourceId``
        """
        request = event.get('RequestType')
        props = event.get('ResourceProperties') or {}
        identifier = props.get('StoreIdentifier') or props.get('BucketName')
        response = {'Status': 'SUCCESS',
                    'Reason': '',
                    'PhysicalResourceId': (event.get('PhysicalResourceId') or
                                           identifier or 'k3sjoin-teardown')}

        if request != 'Delete':
            LOGGER.debug("Ignoring %s request", request)
            return response

        if not identifier:
            response.update(Status='FAILED',
                            Reason='no store identifier in event')
            return response

        try:
            self.on_delete(identifier)
        except TeardownError as exc:
            LOGGER.error("%s", exc)
            response.update(Status='FAILED', Reason=str(exc))
        return response
