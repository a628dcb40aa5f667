#managers.py:
# Contains the KeyValueStore, ReminderStore, Notifier (with its banner and audio
# channels) and Scheduler classes.

import json
import logging
import os
import sqlite3
import threading

os.environ.setdefault('PYGAME_HIDE_SUPPORT_PROMPT', '1')

import pygame
import schedule
from plyer import notification

from models import Reminder, current_time, is_due, sort_for_display

POLL_INTERVAL_SECONDS = 10
BANNER_SECONDS = 15

REMINDERS_KEY = 'reminders'
PERMISSION_KEY = 'notification_permission'
PERMISSION_STATES = ('granted', 'denied', 'default')

NOTIFICATION_TITLE = "💊 Medication Reminder"
NOTIFICATION_BODY = "Time to take: {name}"
# freedesktop icon name; on other platforms the backend ignores unknown icons
NOTIFICATION_ICON = 'dialog-information'
BANNER_TEXT = "🔔 Time to take: {name}"


class KeyValueStore:
    """A single SQLite table of string keys to string values."""

    def __init__(self, database):
        self.conn = sqlite3.connect(database, check_same_thread=False)
        self.cursor = self.conn.cursor()
        self.create_table()

    def create_table(self):
        self.cursor.execute('''
        CREATE TABLE IF NOT EXISTS kv (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        ''')
        self.conn.commit()
        logging.info("Database connected and table ensured.")

    def get(self, key):
        try:
            self.cursor.execute('SELECT value FROM kv WHERE key = ?', (key,))
            row = self.cursor.fetchone()
        except sqlite3.Error as e:
            logging.error("Error reading '%s': %s", key, e)
            return None
        return row[0] if row else None

    def set(self, key, value):
        try:
            self.cursor.execute('''
            INSERT INTO kv (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            ''', (key, value))
            self.conn.commit()
            return True
        except sqlite3.Error as e:
            logging.error("Error saving '%s': %s", key, e)
            return False

    def close(self):
        self.conn.close()
        logging.info("Database connection closed.")


class ReminderStore:
    # list stays in insertion order; lock covers every mutation and its persist
    def __init__(self, kv):
        self.kv = kv
        self.lock = threading.RLock()
        self.reminders = self.load()

    def load(self):
        raw = self.kv.get(REMINDERS_KEY)
        if raw is None:
            return []
        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError(f"expected a list, got {type(records).__name__}")
            return [Reminder.from_dict(record) for record in records]
        except (ValueError, TypeError) as e:
            logging.warning("Ignoring unreadable reminder data: %s", e)
            return []

    def reload(self):
        with self.lock:
            self.reminders = self.load()
            return self.reminders

    def persist(self):
        with self.lock:
            payload = json.dumps([reminder.to_dict() for reminder in self.reminders], ensure_ascii=False)
            return self.kv.set(REMINDERS_KEY, payload)

    def add(self, name, time):
        reminder = Reminder(name, time)
        with self.lock:
            self.reminders.append(reminder)
            self.persist()
        logging.info("Added reminder: '%s' at %s", reminder.name, reminder.time)
        return reminder

    def get(self, reminder_id):
        with self.lock:
            for reminder in self.reminders:
                if reminder.id == reminder_id:
                    return reminder
        return None

    def delete(self, reminder_id):
        with self.lock:
            for index, reminder in enumerate(self.reminders):
                if reminder.id == reminder_id:
                    del self.reminders[index]
                    self.persist()
                    logging.info("Deleted reminder '%s' (%s)", reminder.name, reminder_id)
                    return True
        logging.warning("No reminder with id %s to delete", reminder_id)
        return False

    def delete_at(self, display_index):
        """Delete the reminder at ``display_index`` of the time-sorted view."""
        with self.lock:
            ordered = self.sorted_reminders()
            if not 0 <= display_index < len(ordered):
                logging.warning("Display index %d out of range", display_index)
                return None
            reminder = ordered[display_index]
            self.delete(reminder.id)
            return reminder

    def mark_notified(self, reminder_id, persist=True):
        with self.lock:
            reminder = self.get(reminder_id)
            if reminder is None:
                return False
            reminder.notified = True
            if persist:
                self.persist()
            return True

    def sorted_reminders(self):
        with self.lock:
            return sort_for_display(self.reminders)

    def get_setting(self, key, default=None):
        value = self.kv.get(key)
        return default if value is None else value

    def set_setting(self, key, value):
        return self.kv.set(key, value)

    def notification_permission(self):
        state = self.get_setting(PERMISSION_KEY, 'default')
        return state if state in PERMISSION_STATES else 'default'


class VisualBanner:
    def __init__(self, jobs, duration=BANNER_SECONDS):
        self.jobs = jobs
        self.duration = duration
        self.text = None
        self.visible = False
        self.hide_job = None
        self.shown = 0

    def show(self, text):
        if self.hide_job is not None:
            self.jobs.cancel_job(self.hide_job)
        self.text = text
        self.visible = True
        print(f"\n{'=' * 40}\n{text}\n{'=' * 40}")
        self.shown += 1
        self.hide_job = self.jobs.every(self.duration).seconds.do(self.hide, self.shown)

    def hide(self, shown=None):
        # a cancelled job can still run once in the same run_pending batch
        if shown is not None and shown != self.shown:
            return schedule.CancelJob
        self.visible = False
        self.hide_job = None
        print(f"(reminder banner cleared: {self.text})")
        logging.info("Banner hidden: '%s'", self.text)
        return schedule.CancelJob


class AudioCue:
    def __init__(self, sound_file):
        self.sound_file = sound_file
        self.sound = None

    def play(self):
        if not pygame.mixer.get_init():
            pygame.mixer.init()
        if self.sound is None:
            self.sound = pygame.mixer.Sound(self.sound_file)
        self.sound.play()


class Notifier:
    def __init__(self, banner, audio, permission=lambda: 'default'):
        self.banner = banner
        self.audio = audio
        self.permission = permission

    def fire(self, name):
        self.send_notification(name)
        self.show_banner(name)
        self.play_sound()
        logging.info("Reminder fired for '%s'", name)

    def send_notification(self, name):
        try:
            if self.permission() != 'granted':
                return False
            notification.notify(
                title=NOTIFICATION_TITLE,
                message=NOTIFICATION_BODY.format(name=name),
                app_icon=NOTIFICATION_ICON,
                timeout=BANNER_SECONDS,
            )
            return True
        except Exception as e:
            logging.error("Failed to send notification: %s", e)
            return False

    def show_banner(self, name):
        try:
            self.banner.show(BANNER_TEXT.format(name=name))
            return True
        except Exception as e:
            logging.error("Failed to show banner: %s", e)
            return False

    def play_sound(self):
        try:
            self.audio.play()
            return True
        except Exception as e:
            logging.warning("Sound failed: %s", e)
            return False


class Scheduler:
    def __init__(self, store, notifier, jobs=None, interval=POLL_INTERVAL_SECONDS):
        self.store = store
        self.notifier = notifier
        self.jobs = jobs if jobs is not None else schedule.Scheduler()
        self.jobs.every(interval).seconds.do(self.check_reminders)
        self.stop_event = threading.Event()
        self.scheduler_thread = None

    def start(self):
        self.scheduler_thread = threading.Thread(target=self.run, daemon=True)
        self.scheduler_thread.start()

    def run(self):
        while not self.stop_event.is_set():
            self.run_pending()
            self.stop_event.wait(1)

    def run_pending(self):
        with self.store.lock:
            self.jobs.run_pending()

    def stop(self):
        self.stop_event.set()
        if self.scheduler_thread is not None:
            self.scheduler_thread.join(timeout=2)

    def check_reminders(self):
        try:
            now = current_time()
            updated = False
            with self.store.lock:
                for reminder in self.store.reminders:
                    if is_due(now, reminder):
                        self.notifier.fire(reminder.name)
                        self.store.mark_notified(reminder.id, persist=False)
                        updated = True
                if updated:
                    self.store.persist()
        except Exception as e:
            logging.error("Error checking reminders: %s", e)
