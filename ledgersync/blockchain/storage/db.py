import sqlite3
import threading
from typing import Dict, List, Optional, Tuple

from ..ledger.types import EpochUpdate


class StorageDB:
    """
    Relational store for data derived from the ledger (blocks, epoch params,
    rewards, stake distribution).

    Writes accumulate in one open transaction until `transaction_commit()`.
    SQLite transactions are serializable; `BEGIN IMMEDIATE` takes the write
    lock up front so a unit of work never has to upgrade mid-way.

    Inserts are `INSERT OR REPLACE`: replaying a block after a rollback
    overwrites its row. Epoch rows are only written for Shelley boundaries;
    Byron epochs have no params, rewards or stake, so they get no rows.
    """

    def __init__(self, db_path: str):
        self.conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self.cursor = self.conn.cursor()
        self._lock = threading.Lock()
        self._in_transaction = False
        self._init_db()

    def _init_db(self):
        with self._lock:
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS block (
                    slot_no INTEGER PRIMARY KEY,
                    block_no INTEGER NOT NULL,
                    hash TEXT UNIQUE NOT NULL,
                    epoch_no INTEGER NOT NULL
                )
            ''')
            # One row per epoch boundary
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS epoch_param (
                    epoch_no INTEGER PRIMARY KEY,
                    slot_no INTEGER NOT NULL,
                    data TEXT NOT NULL
                )
            ''')
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS reward (
                    epoch_no INTEGER NOT NULL,
                    addr TEXT NOT NULL,
                    amount INTEGER NOT NULL,
                    slot_no INTEGER NOT NULL,
                    PRIMARY KEY (epoch_no, addr)
                )
            ''')
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS epoch_stake (
                    epoch_no INTEGER NOT NULL,
                    addr TEXT NOT NULL,
                    amount INTEGER NOT NULL,
                    slot_no INTEGER NOT NULL,
                    PRIMARY KEY (epoch_no, addr)
                )
            ''')

    def _begin(self):
        # Caller holds self._lock
        if not self._in_transaction:
            self.cursor.execute('BEGIN IMMEDIATE')
            self._in_transaction = True

    def transaction_commit(self):
        """Commit the current unit of work (serializable isolation)."""
        with self._lock:
            if self._in_transaction:
                self.cursor.execute('COMMIT')
                self._in_transaction = False

    def transaction_rollback(self):
        with self._lock:
            if self._in_transaction:
                self.cursor.execute('ROLLBACK')
                self._in_transaction = False

    def insert_block(self, slot_no: int, block_no: int, block_hash: str, epoch_no: int):
        with self._lock:
            self._begin()
            self.cursor.execute(
                'INSERT OR REPLACE INTO block (slot_no, block_no, hash, epoch_no) VALUES (?, ?, ?, ?)',
                (slot_no, block_no, block_hash, epoch_no)
            )

    def insert_epoch_update(self, slot_no: int, update: EpochUpdate):
        """
        Store the Shelley aggregates of an epoch update. The stake distribution
        becomes active in the epoch after `update.epoch_no`.
        """
        params_json = update.param_update.model_dump_json()
        rewards = update.reward_update.rewards
        stake = update.stake_update.stake
        with self._lock:
            self._begin()
            self.cursor.execute(
                'INSERT OR REPLACE INTO epoch_param (epoch_no, slot_no, data) VALUES (?, ?, ?)',
                (update.epoch_no, slot_no, params_json)
            )
            self.cursor.executemany(
                'INSERT OR REPLACE INTO reward (epoch_no, addr, amount, slot_no) VALUES (?, ?, ?, ?)',
                [(update.epoch_no, addr, amount, slot_no) for addr, amount in rewards.items()]
            )
            self.cursor.executemany(
                'INSERT OR REPLACE INTO epoch_stake (epoch_no, addr, amount, slot_no) VALUES (?, ?, ?, ?)',
                [(update.epoch_no + 1, addr, amount, slot_no) for addr, amount in stake.items()]
            )

    def delete_after_slot(self, slot_no: int) -> int:
        """Delete everything derived from blocks after `slot_no`. Returns blocks deleted."""
        with self._lock:
            self._begin()
            self.cursor.execute('DELETE FROM block WHERE slot_no > ?', (slot_no,))
            deleted = self.cursor.rowcount
            for table in ('epoch_param', 'reward', 'epoch_stake'):
                self.cursor.execute(f'DELETE FROM {table} WHERE slot_no > ?', (slot_no,))
            return deleted

    def get_last_block(self) -> Optional[Tuple[int, int, str]]:
        """Returns (slot_no, block_no, hash) of the last block."""
        with self._lock:
            self.cursor.execute('SELECT slot_no, block_no, hash FROM block ORDER BY slot_no DESC LIMIT 1')
            row = self.cursor.fetchone()
            return row if row else None

    def get_block_hash(self, slot_no: int) -> Optional[str]:
        with self._lock:
            self.cursor.execute('SELECT hash FROM block WHERE slot_no = ?', (slot_no,))
            row = self.cursor.fetchone()
            return row[0] if row else None

    def get_epoch_params(self, epoch_no: int) -> Optional[str]:
        with self._lock:
            self.cursor.execute('SELECT data FROM epoch_param WHERE epoch_no = ?', (epoch_no,))
            row = self.cursor.fetchone()
            return row[0] if row else None

    def get_rewards(self, epoch_no: int) -> Dict[str, int]:
        with self._lock:
            self.cursor.execute('SELECT addr, amount FROM reward WHERE epoch_no = ?', (epoch_no,))
            return {row[0]: row[1] for row in self.cursor.fetchall()}

    def get_epoch_stake(self, epoch_no: int) -> Dict[str, int]:
        with self._lock:
            self.cursor.execute('SELECT addr, amount FROM epoch_stake WHERE epoch_no = ?', (epoch_no,))
            return {row[0]: row[1] for row in self.cursor.fetchall()}

    def list_epoch_params(self) -> List[int]:
        with self._lock:
            self.cursor.execute('SELECT epoch_no FROM epoch_param ORDER BY epoch_no')
            return [row[0] for row in self.cursor.fetchall()]

    def close(self):
        with self._lock:
            if self._in_transaction:
                self.cursor.execute('ROLLBACK')
                self._in_transaction = False
            self.conn.close()
