"""Initial schema for the local library store

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Playback sessions
    op.create_table(
        'playback_sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('source', sa.String(16), nullable=False),
        sa.Column('title', sa.String(512), nullable=False),
        sa.Column('created_at', sa.BigInteger, nullable=False),
        sa.Column('last_played_at', sa.BigInteger, nullable=False),
        sa.Column('size_bytes', sa.BigInteger, nullable=True),
        sa.Column('duration', sa.Float, nullable=True),
        sa.Column('progress', sa.Float, nullable=True),
        sa.Column('audio_id', sa.String(36), nullable=True),
        sa.Column('subtitle_id', sa.String(36), nullable=True),
        sa.Column('has_audio_blob', sa.Boolean, nullable=True),
        sa.Column('subtitle_type', sa.String(8), nullable=True),
        sa.Column('audio_filename', sa.String(1024), nullable=True),
        sa.Column('subtitle_filename', sa.String(1024), nullable=True),
        sa.Column('audio_url', sa.String(2048), nullable=True),
        sa.Column('local_track_id', sa.String(36), nullable=True),
        sa.Column('artwork_url', sa.String(2048), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('podcast_title', sa.String(512), nullable=True),
        sa.Column('podcast_feed_url', sa.String(2048), nullable=True),
        sa.Column('published_at', sa.BigInteger, nullable=True),
        sa.Column('episode_id', sa.String(2048), nullable=True),
        sa.Column('extra', sa.JSON, nullable=True),
    )
    op.create_index('ix_playback_sessions_last_played_at', 'playback_sessions', ['last_played_at'])
    op.create_index('ix_playback_sessions_audio_url', 'playback_sessions', ['audio_url'])
    op.create_index('ix_playback_sessions_local_track_id', 'playback_sessions', ['local_track_id'])
    op.create_index('ix_playback_sessions_episode_id', 'playback_sessions', ['episode_id'])
    op.create_index('ix_playback_sessions_created_at', 'playback_sessions', ['created_at'])

    # Blobs
    op.create_table(
        'audio_blobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('data', sa.LargeBinary, nullable=False),
        sa.Column('size', sa.BigInteger, nullable=False),
        sa.Column('mime_type', sa.String(128), nullable=True),
        sa.Column('filename', sa.String(1024), nullable=True),
        sa.Column('stored_at', sa.BigInteger, nullable=False),
    )
    op.create_index('ix_audio_blobs_stored_at', 'audio_blobs', ['stored_at'])

    op.create_table(
        'subtitle_blobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('size', sa.BigInteger, nullable=False),
        sa.Column('filename', sa.String(1024), nullable=True),
        sa.Column('format', sa.String(8), nullable=False),
        sa.Column('stored_at', sa.BigInteger, nullable=False),
    )
    op.create_index('ix_subtitle_blobs_stored_at', 'subtitle_blobs', ['stored_at'])

    # Subscriptions and favorites
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('feed_url', sa.String(2048), unique=True, nullable=False),
        sa.Column('title', sa.String(512), nullable=False),
        sa.Column('author', sa.String(512), nullable=True),
        sa.Column('artwork_url', sa.String(2048), nullable=True),
        sa.Column('added_at', sa.BigInteger, nullable=False),
        sa.Column('provider_podcast_id', sa.String(64), nullable=True),
        sa.Column('extra', sa.JSON, nullable=True),
    )
    op.create_index('ix_subscriptions_added_at', 'subscriptions', ['added_at'])
    op.create_index('ix_subscriptions_provider_podcast_id', 'subscriptions', ['provider_podcast_id'])

    op.create_table(
        'favorites',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('key', sa.String(4200), unique=True, nullable=False),
        sa.Column('feed_url', sa.String(2048), nullable=False),
        sa.Column('audio_url', sa.String(2048), nullable=False),
        sa.Column('episode_title', sa.String(512), nullable=False),
        sa.Column('podcast_title', sa.String(512), nullable=False),
        sa.Column('artwork_url', sa.String(2048), nullable=True),
        sa.Column('added_at', sa.BigInteger, nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('pub_date', sa.String(64), nullable=True),
        sa.Column('duration', sa.Float, nullable=True),
        sa.Column('episode_artwork_url', sa.String(2048), nullable=True),
        sa.Column('episode_id', sa.String(2048), nullable=True),
        sa.Column('provider_episode_id', sa.String(64), nullable=True),
        sa.Column('extra', sa.JSON, nullable=True),
    )
    op.create_index('ix_favorites_added_at', 'favorites', ['added_at'])
    op.create_index('ix_favorites_episode_id', 'favorites', ['episode_id'])

    op.create_table(
        'settings',
        sa.Column('key', sa.String(256), primary_key=True),
        sa.Column('value', sa.Text, nullable=False),
        sa.Column('updated_at', sa.BigInteger, nullable=False),
        sa.Column('extra', sa.JSON, nullable=True),
    )

    # Local files
    op.create_table(
        'folders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(512), nullable=False),
        sa.Column('created_at', sa.BigInteger, nullable=False),
        sa.Column('pinned_at', sa.BigInteger, nullable=True),
        sa.Column('extra', sa.JSON, nullable=True),
    )
    op.create_index('ix_folders_name', 'folders', ['name'])
    op.create_index('ix_folders_created_at', 'folders', ['created_at'])

    op.create_table(
        'local_tracks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('folder_id', sa.String(36), nullable=True),
        sa.Column('name', sa.String(1024), nullable=False),
        sa.Column('audio_id', sa.String(36), nullable=False),
        sa.Column('size_bytes', sa.BigInteger, nullable=False),
        sa.Column('duration_seconds', sa.Float, nullable=True),
        sa.Column('created_at', sa.BigInteger, nullable=False),
        sa.Column('active_subtitle_id', sa.String(36), nullable=True),
        sa.Column('artwork_id', sa.String(36), nullable=True),
        sa.Column('extra', sa.JSON, nullable=True),
    )
    op.create_index('ix_local_tracks_folder_id', 'local_tracks', ['folder_id'])
    op.create_index('ix_local_tracks_created_at', 'local_tracks', ['created_at'])
    op.create_index('ix_local_tracks_name', 'local_tracks', ['name'])

    op.create_table(
        'local_subtitles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('track_id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(1024), nullable=False),
        sa.Column('subtitle_id', sa.String(36), nullable=False),
        sa.Column('extra', sa.JSON, nullable=True),
    )
    op.create_index('ix_local_subtitles_track_id', 'local_subtitles', ['track_id'])


def downgrade() -> None:
    op.drop_table('local_subtitles')
    op.drop_table('local_tracks')
    op.drop_table('folders')
    op.drop_table('settings')
    op.drop_table('favorites')
    op.drop_table('subscriptions')
    op.drop_table('subtitle_blobs')
    op.drop_table('audio_blobs')
    op.drop_table('playback_sessions')
