# Copyright (c) 2020 Jeff Irion and contributors
#
# This file is part of the adb-client package.

"""A base class for transports used to communicate with the adb server.

* :class:`BaseTransport`

    * :meth:`BaseTransport.bulk_read`
    * :meth:`BaseTransport.bulk_write`
    * :meth:`BaseTransport.close`
    * :meth:`BaseTransport.connect`

"""


from abc import ABC, abstractmethod


class BaseTransport(ABC):
    """A base transport class.

    """

    @abstractmethod
    def close(self):
        """Close the connection.

        """

    @abstractmethod
    def connect(self, transport_timeout_s=None):
        """Create a connection to the adb server.

        Parameters
        ----------
        transport_timeout_s : float, None
            A connection timeout

        Raises
        ------
        adb_client.exceptions.AdbConnectionError
            The adb server could not be reached
        adb_client.exceptions.TcpTimeoutException
            Connecting timed out

        """

    @abstractmethod
    def bulk_read(self, numbytes, transport_timeout_s=None):
        """Read data from the adb server.

        Parameters
        ----------
        numbytes : int
            The maximum amount of data to be received
        transport_timeout_s : float, None
            A timeout for the read operation

        Returns
        -------
        bytes
            The received data; an empty result means the connection was closed

        Raises
        ------
        adb_client.exceptions.AdbConnectionError
            The transport is not connected, or the connection was reset
        adb_client.exceptions.TcpTimeoutException
            Reading timed out

        """

    @abstractmethod
    def bulk_write(self, data, transport_timeout_s=None):
        """Send data to the adb server.

        Parameters
        ----------
        data : bytes
            The data to be sent
        transport_timeout_s : float, None
            A timeout for the write operation

        Returns
        -------
        int
            The number of bytes sent

        Raises
        ------
        adb_client.exceptions.AdbConnectionError
            The transport is not connected, or the connection was reset
        adb_client.exceptions.TcpTimeoutException
            Sending data timed out

        """
