# Copyright 2024 Ericsson Software Technology
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from oslo_config import cfg

CONF = cfg.CONF

opts = [
    cfg.StrOpt('cipher',
               default='aes-xts-plain64',
               help='Cipher specification passed to cryptsetup luksFormat.'),
    cfg.IntOpt('key_size',
               default=512,
               min=128,
               help='Key size in bits used when creating an image without '
                    'an explicit -k.'),
    cfg.StrOpt('hash',
               default='sha512',
               help='Hash used for key derivation when creating an image '
                    'without an explicit -H.'),
    cfg.StrOpt('luks_type',
               default='luks2',
               choices=['luks1', 'luks2'],
               help='On-disk LUKS format version of newly created images.'),
    cfg.StrOpt('mount_root',
               default='/mnt',
               help='Directory holding the default mount points. An image '
                    'opened as NAME is mounted at <mount_root>/NAME unless '
                    'a mount point is given.'),
    cfg.BoolOpt('zero_device',
                default=True,
                help='Overwrite the opened LUKS device with zeros before '
                     'creating the filesystem, so the whole image holds '
                     'ciphertext.'),
    cfg.IntOpt('zero_block_size',
               default=1024 * 1024,
               min=512,
               help='Block size in bytes used by dd while zeroing.'),
    cfg.ListOpt('mkfs_options',
                default=[],
                help='Additional arguments passed to mkfs.xfs.'),
]

CONF.register_opts(opts)


def list_opts():
    return [('DEFAULT', opts)]
